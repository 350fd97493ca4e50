"""Persistence for the table backend; the schema script lives in `create_tables`."""

from .session import Base, get_engine, get_session

__all__ = ["Base", "get_engine", "get_session"]
