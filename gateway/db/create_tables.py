"""Create the gateway tables (users, verify_codes, sessions) on DATABASE_URL.

Run with ``python -m gateway.db.create_tables`` before the first start of the
table backend.
"""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from .session import Base, get_engine
from . import models  # noqa: F401  # registers the account tables on Base.metadata


def create_all() -> list[str]:
    """Create missing tables; returns the table names known to the gateway."""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    return sorted(Base.metadata.tables)


if __name__ == "__main__":
    try:
        tables = create_all()
        print(f"[db] tabelas prontas: {', '.join(tables)}")
    except (SQLAlchemyError, RuntimeError) as exc:
        raise SystemExit(f"[db] falha ao criar tabelas da gateway: {exc}") from exc
