"""
Account gateway interface and backend selection.

Callers depend on AccountGateway only. Every operation validates its request,
performs a single outbound step through the adapter and always returns a typed
result: validation problems, business rejections and transport failures are
converted at this boundary and never reach the caller as exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, replace
from typing import Awaitable, Callable, Optional, TypeVar

from gateway.core.config import BACKEND_HTTP, BACKEND_TABLE, Settings, get_settings
from gateway.core.security import mask_payload
from gateway.domain.accounts import (
    LOGIN_INVALID,
    LOGIN_UNVERIFIED,
    MISSING_PHONE,
    REGISTER_DUPLICATE,
    USER_NOT_FOUND,
    VERIFY_REJECTED,
    CodeVerificationRequest,
    CodeVerificationResult,
    Currency,
    LoginRequest,
    LoginResult,
    RegistrationRequest,
    RegistrationResult,
    TokenPurchaseRequest,
    TokenPurchaseResult,
)
from gateway.domain.phones import is_valid_phone


class GatewayError(Exception):
    """Base class for failures mapped onto a result at the operation boundary."""

    message: Optional[str] = None

    def __init__(self, detail: Optional[str] = None, message: Optional[str] = None):
        super().__init__(detail or message or self.message or "")
        self.detail = detail
        if message:
            self.message = message


class InvalidRequestError(GatewayError):
    pass


class DuplicateAccountError(GatewayError):
    message = REGISTER_DUPLICATE


class UserNotFoundError(GatewayError):
    message = USER_NOT_FOUND


class InvalidCodeError(GatewayError):
    message = VERIFY_REJECTED


class InvalidCredentialsError(GatewayError):
    message = LOGIN_INVALID


class AccountNotVerifiedError(GatewayError):
    message = LOGIN_UNVERIFIED


class RemoteRejectedError(GatewayError):
    """The remote service answered but reported a business failure."""


# -------------------------------------- validation --------------------------------------
def validate_registration(request: RegistrationRequest) -> None:
    email = (request.email or "").strip()
    if not email or "@" not in email:
        raise InvalidRequestError("Correo electrónico inválido")
    if not is_valid_phone(request.remotejid):
        raise InvalidRequestError("Número de teléfono inválido")
    if not request.password:
        raise InvalidRequestError("La contraseña es obligatoria")


def validate_code_verification(request: CodeVerificationRequest) -> None:
    if not (request.email or "").strip():
        raise InvalidRequestError("Correo electrónico obligatorio")
    if not (request.code or "").strip():
        raise InvalidRequestError("El código es obligatorio")


def validate_login(request: LoginRequest) -> None:
    if not (request.phone or "").strip() or not request.password:
        raise InvalidRequestError("Teléfono y contraseña son obligatorios")


def validate_purchase(request: TokenPurchaseRequest) -> None:
    if not (request.phone or "").strip():
        raise InvalidRequestError(MISSING_PHONE)
    if isinstance(request.amount, bool) or not isinstance(request.amount, int) or request.amount <= 0:
        raise InvalidRequestError("La cantidad debe ser un entero positivo")
    try:
        Currency.parse(request.currency)
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc


R = TypeVar("R")


class AccountGateway(ABC):
    """Polymorphic interface shared by every backend adapter."""

    name = "gateway"
    # Exceptions an adapter treats as transport failures.
    transport_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # -------------------------------------- operations --------------------------------------
    async def register(self, request: RegistrationRequest) -> RegistrationResult:
        return await self._run("register", request, validate_registration, self._register, RegistrationResult)

    async def verify_code(self, request: CodeVerificationRequest) -> CodeVerificationResult:
        return await self._run("verify", request, validate_code_verification, self._verify_code, CodeVerificationResult)

    async def login(self, request: LoginRequest) -> LoginResult:
        return await self._run("login", request, validate_login, self._login, LoginResult)

    async def purchase_tokens(self, request: TokenPurchaseRequest) -> TokenPurchaseResult:
        return await self._run("purchase", request, validate_purchase, self._purchase_tokens, TokenPurchaseResult)

    # -------------------------------------- adapter hooks --------------------------------------
    @abstractmethod
    async def _register(self, request: RegistrationRequest) -> RegistrationResult:
        ...

    @abstractmethod
    async def _verify_code(self, request: CodeVerificationRequest) -> CodeVerificationResult:
        ...

    @abstractmethod
    async def _login(self, request: LoginRequest) -> LoginResult:
        ...

    @abstractmethod
    async def _purchase_tokens(self, request: TokenPurchaseRequest) -> TokenPurchaseResult:
        ...

    # -------------------------------------- helpers --------------------------------------
    def _log(self, text: str) -> None:
        print(f"[gateway] {self.name} {text}")

    async def _run(
        self,
        action: str,
        request,
        validate: Callable[[object], None],
        call: Callable[[object], Awaitable[R]],
        result_cls,
    ) -> R:
        self._log(f"{action}: {mask_payload(asdict(request))}")
        try:
            validate(request)
            result = await call(request)
        except GatewayError as exc:
            self._log(f"{action} rejected: {exc}")
            return result_cls.fail(exc.detail, message=exc.message)
        except self.transport_errors as exc:
            self._log(f"{action} failed: {exc!r}")
            return result_cls.fail(str(exc) or type(exc).__name__)
        self._log(f"{action} -> success={result.success}")
        return result


def build_gateway(settings: Optional[Settings] = None, **overrides) -> AccountGateway:
    """Return the adapter selected by `account_backend` (http or table)."""
    settings = settings or get_settings()
    if overrides:
        settings = replace(settings, **overrides)
    backend = (settings.account_backend or BACKEND_HTTP).lower()
    if backend == BACKEND_HTTP:
        from gateway.services.http_gateway import HttpAccountGateway

        return HttpAccountGateway(settings)
    if backend == BACKEND_TABLE:
        from gateway.services.table_gateway import TableAccountGateway

        return TableAccountGateway(settings)
    raise ValueError(f"Unknown account backend: {settings.account_backend!r}")
