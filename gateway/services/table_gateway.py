"""
Managed-table adapter.

Talks to the hosted `users` table directly (select/insert/update keyed by
email or remotejid). The repository is synchronous, so every operation runs
its blocking step in a worker thread and stays awaitable like the HTTP
adapter.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from gateway.core.config import Settings
from gateway.core.mailer import send_verification_code
from gateway.core.security import generate_code, hash_password, is_hashed, verify_password
from gateway.db.models import STATUS_VERIFIED
from gateway.domain.accounts import (
    CODE_EXPIRED,
    CODE_LOCKED,
    CODE_MISMATCH,
    CODE_RESENT,
    VERIFY_ALREADY,
    CodeVerificationRequest,
    CodeVerificationResult,
    LoginRequest,
    LoginResult,
    RegistrationRequest,
    RegistrationResult,
    TokenPurchaseRequest,
    TokenPurchaseResult,
)
from gateway.domain.phones import normalize_remotejid
from gateway.repositories.sql_repository import SQLRepository
from gateway.services.account_gateway import (
    AccountGateway,
    AccountNotVerifiedError,
    DuplicateAccountError,
    InvalidCodeError,
    InvalidCredentialsError,
    UserNotFoundError,
)

CodeSender = Callable[[str, str], bool]
MAX_CODE_ATTEMPTS = 5


class TableAccountGateway(AccountGateway):
    """Handles registration, verification, login and purchases against the users table."""

    name = "table"
    # RuntimeError covers an unconfigured DATABASE_URL.
    transport_errors = (SQLAlchemyError, OSError, RuntimeError)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        repository: Optional[SQLRepository] = None,
        code_sender: Optional[CodeSender] = None,
    ):
        super().__init__(settings)
        self.repository = repository or SQLRepository()
        self._code_sender = code_sender

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> int:
        return int(time.time())

    def _code_expired(self, created_at: datetime | int | None, now: int) -> bool:
        ttl = self.settings.verification_code_ttl_seconds
        if ttl <= 0:
            return False
        created_ts = 0
        if isinstance(created_at, datetime):
            # SQLite hands back naive datetimes; they were written as UTC.
            normalized = created_at.astimezone(timezone.utc) if created_at.tzinfo else created_at.replace(tzinfo=timezone.utc)
            created_ts = int(normalized.timestamp())
        else:
            created_ts = int(created_at or 0)
        if not created_ts:
            return True
        return (created_ts + ttl) < now

    def _send_code(self, email: str, code: str) -> bool:
        if self._code_sender is not None:
            return self._code_sender(email, code)
        return send_verification_code(email, code, settings=self.settings)

    def _issue_code(self, email: str) -> bool:
        """Replace any pending code for the email with a fresh one and send it."""
        code = generate_code()
        self.repository.delete_verify_codes_for_email(email)
        self.repository.create_verify_code(email, code)
        sent = self._send_code(email, code)
        if not sent:
            self._log(f"codigo para {email} nao foi enviado")
        return sent

    def _ensure_code(self, email: str) -> bool:
        """Issue a new code unless a live one is already waiting; returns True when one was sent."""
        entity = self.repository.get_latest_verify_code(email)
        if entity and not self._code_expired(entity.created_at, self._now()):
            return False
        return self._issue_code(email)

    # -------------------------------------- registro --------------------------------------
    def _register_sync(self, request: RegistrationRequest) -> RegistrationResult:
        email = request.email.strip().lower()
        remotejid = normalize_remotejid(request.remotejid)
        existing = self.repository.find_existing_users(email, remotejid)
        if any(user.status == STATUS_VERIFIED for user in existing):
            raise DuplicateAccountError("Ya existe una cuenta con ese correo o teléfono")
        # Unverified rows never completed signup; a new registration takes their place.
        for stale in existing:
            self._log(f"register: substituindo cadastro pendente {stale.id}")
            self.repository.delete_user(stale.id)
        try:
            self.repository.create_user(
                email=email,
                remotejid=remotejid,
                password_hash=hash_password(request.password),
                name=(request.name or "").strip(),
                lastname=(request.lastname or "").strip(),
            )
        except IntegrityError as exc:
            raise DuplicateAccountError("Ya existe una cuenta con ese correo o teléfono") from exc
        self._issue_code(email)
        return RegistrationResult.ok()

    async def _register(self, request: RegistrationRequest) -> RegistrationResult:
        return await asyncio.to_thread(self._register_sync, request)

    # -------------------------------------- verificação --------------------------------------
    def _verify_code_sync(self, request: CodeVerificationRequest) -> CodeVerificationResult:
        email = request.email.strip().lower()
        user = self.repository.get_user_by_email(email)
        if not user:
            raise UserNotFoundError("No existe un usuario con ese correo")
        if user.status == STATUS_VERIFIED:
            return CodeVerificationResult.ok(message=VERIFY_ALREADY)
        entity = self.repository.get_latest_verify_code(email)
        if not entity:
            raise InvalidCodeError(CODE_EXPIRED)
        if entity.code != request.code.strip():
            attempts = self.repository.register_failed_attempt(entity.id)
            if attempts >= MAX_CODE_ATTEMPTS:
                self.repository.delete_verify_codes_for_email(email)
                raise InvalidCodeError(CODE_LOCKED)
            raise InvalidCodeError(CODE_MISMATCH)
        if self._code_expired(entity.created_at, self._now()):
            self.repository.delete_verify_codes_for_email(email)
            raise InvalidCodeError(CODE_EXPIRED)
        self.repository.set_user_verified(email)
        self.repository.delete_verify_codes_for_email(email)
        return CodeVerificationResult.ok()

    async def _verify_code(self, request: CodeVerificationRequest) -> CodeVerificationResult:
        return await asyncio.to_thread(self._verify_code_sync, request)

    # -------------------------------------- login --------------------------------------
    def _login_sync(self, request: LoginRequest) -> LoginResult:
        remotejid = normalize_remotejid(request.phone)
        user = self.repository.get_user_by_remotejid(remotejid)
        if not user:
            raise UserNotFoundError("No existe un usuario con ese teléfono")
        if not verify_password(request.password, user.password):
            raise InvalidCredentialsError("Credenciales inválidas")
        if not is_hashed(user.password):
            self.repository.update_user_password(user.id, hash_password(request.password))
        if user.status != STATUS_VERIFIED:
            if self._ensure_code(user.email):
                raise AccountNotVerifiedError(CODE_RESENT)
            raise AccountNotVerifiedError("Verifica tu código antes de iniciar sesión")
        token = self.repository.create_session(user.id, self.settings.session_ttl_seconds)
        return LoginResult.ok(session_token=token)

    async def _login(self, request: LoginRequest) -> LoginResult:
        return await asyncio.to_thread(self._login_sync, request)

    # -------------------------------------- compras --------------------------------------
    def _purchase_sync(self, request: TokenPurchaseRequest) -> TokenPurchaseResult:
        remotejid = normalize_remotejid(request.phone)
        balance = self.repository.add_credits(remotejid, request.amount)
        if balance is None:
            raise UserNotFoundError("No existe un usuario con ese teléfono")
        return TokenPurchaseResult.ok(tokens_added=request.amount, balance=balance)

    async def _purchase_tokens(self, request: TokenPurchaseRequest) -> TokenPurchaseResult:
        return await asyncio.to_thread(self._purchase_sync, request)

    # -------------------------------------- sessões --------------------------------------
    def _session_owns_phone(self, token: Optional[str], phone: str) -> bool:
        user = self.repository.get_session_user(token or "")
        if not user or user.status != STATUS_VERIFIED:
            return False
        return normalize_remotejid(user.remotejid) == normalize_remotejid(phone)

    async def authorize_purchase(self, token: Optional[str], phone: str) -> bool:
        """True when `token` is a live session belonging to the account behind `phone`."""
        if not token:
            return False
        try:
            return await asyncio.to_thread(self._session_owns_phone, token, phone)
        except self.transport_errors as exc:
            self._log(f"authorize_purchase falhou: {exc}")
            return False
