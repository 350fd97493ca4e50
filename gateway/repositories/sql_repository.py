"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, or_, select, update

from gateway.core.security import issue_token
from gateway.core.utils import to_int
from gateway.db.models import STATUS_PENDING, STATUS_VERIFIED, User, UserSession, VerifyCode
from gateway.db.session import get_session


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user_by_email(self, email: str) -> Optional[User]:
        with get_session() as session:
            stmt = select(User).where(User.email == email)
            return session.execute(stmt).scalar_one_or_none()

    def get_user_by_remotejid(self, remotejid: str) -> Optional[User]:
        with get_session() as session:
            stmt = select(User).where(User.remotejid == remotejid)
            return session.execute(stmt).scalar_one_or_none()

    def find_existing_users(self, email: str, remotejid: str) -> list[User]:
        """Every user holding the email or the phone identifier (at most two rows)."""
        with get_session() as session:
            stmt = select(User).where(or_(User.email == email, User.remotejid == remotejid))
            return list(session.execute(stmt).scalars().all())

    def delete_user(self, user_id: int) -> None:
        """Remove a user together with its sessions and pending codes."""
        with get_session() as session:
            user = session.get(User, user_id)
            if not user:
                return
            session.execute(delete(VerifyCode).where(VerifyCode.email == user.email))
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.delete(user)
            session.commit()

    def create_user(
        self,
        *,
        email: str,
        remotejid: str,
        password_hash: str,
        name: str = "",
        lastname: str = "",
        status: str = STATUS_PENDING,
        credits: str = "0",
        user_type: str = "client",
    ) -> User:
        now = datetime.now(timezone.utc)
        pushname = f"{name} {lastname}".strip()
        entity = User(
            email=email,
            remotejid=remotejid,
            password=password_hash,
            name=name,
            lastname=lastname,
            pushname=pushname or None,
            status=status,
            credits=credits,
            user_type=user_type,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(password=password_hash, updated_at=datetime.now(timezone.utc))
            )
            session.execute(stmt)
            session.commit()

    def set_user_verified(self, email: str) -> None:
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.email == email)
                .values(status=STATUS_VERIFIED, updated_at=datetime.now(timezone.utc))
            )
            session.execute(stmt)
            session.commit()

    def add_credits(self, remotejid: str, amount: int) -> Optional[int]:
        """Increment the text credits column; returns the new balance or None when the user is missing."""
        with get_session() as session:
            stmt = select(User).where(User.remotejid == remotejid).with_for_update()
            user = session.execute(stmt).scalar_one_or_none()
            if not user:
                return None
            balance = (to_int(user.credits, default=0) or 0) + int(amount)
            user.credits = str(balance)
            user.updated_at = datetime.now(timezone.utc)
            session.commit()
            return balance

    # -------------------------- verification codes --------------------------
    def create_verify_code(self, email: str, code: str) -> VerifyCode:
        entity = VerifyCode(email=email, code=code, created_at=datetime.now(timezone.utc))
        with get_session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def get_latest_verify_code(self, email: str) -> Optional[VerifyCode]:
        with get_session() as session:
            stmt = (
                select(VerifyCode)
                .where(VerifyCode.email == email)
                .order_by(VerifyCode.created_at.desc(), VerifyCode.id.desc())
            )
            return session.execute(stmt).scalars().first()

    def register_failed_attempt(self, code_id: int) -> int:
        """Bump the failed-attempt counter of a code; returns the new count."""
        with get_session() as session:
            entity = session.get(VerifyCode, code_id)
            if not entity:
                return 0
            entity.attempts = int(entity.attempts or 0) + 1
            session.commit()
            return entity.attempts

    def delete_verify_codes_for_email(self, email: str) -> None:
        with get_session() as session:
            session.execute(delete(VerifyCode).where(VerifyCode.email == email))
            session.commit()

    # -------------------------- sessions --------------------------
    def create_session(self, user_id: int, ttl_seconds: int) -> str:
        token = issue_token()
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=max(60, ttl_seconds))
        with get_session() as session:
            session.add(UserSession(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()
        return token

    def get_session_user(self, token: str) -> Optional[User]:
        """User owning a live session token; expired tokens are removed."""
        if not token:
            return None
        now = datetime.now(timezone.utc)
        with get_session() as session:
            entity = session.get(UserSession, token)
            if not entity:
                return None
            expires_at = entity.expires_at
            if expires_at is not None and expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at and expires_at < now:
                session.delete(entity)
                session.commit()
                return None
            return session.get(User, entity.user_id)
