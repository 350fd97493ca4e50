"""SQLAlchemy models for the hosted users table and its companions."""
from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    remotejid = Column(String(64), unique=True, nullable=False)
    pushname = Column(String(255), nullable=True)
    picture = Column(Text, nullable=True)
    status = Column(String(32), default=STATUS_PENDING, nullable=False)
    last_message = Column(Text, nullable=True)
    # Stored as text by the hosted backend; parse before arithmetic.
    credits = Column(String(32), default="0", nullable=False)
    user_type = Column(String(32), default="client", nullable=True)
    name = Column(String(255), nullable=True)
    lastname = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sessions = relationship("UserSession", back_populates="user", cascade="all,delete-orphan")


class VerifyCode(Base):
    __tablename__ = "verify_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(16), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="sessions")
