"""
Request/result records exchanged between callers and the account gateway.

Every result carries `success`; `error` is only populated on failures. Use the
`ok`/`fail` constructors instead of building results by hand so that rule
holds everywhere.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from gateway.core.utils import to_int

# ------------------------------------ messages ------------------------------------
REGISTER_OK = "Registro exitoso, por favor verifica tu código."
REGISTER_FAILED = "Error al registrar usuario."
REGISTER_DUPLICATE = "El correo o el teléfono ya están registrados."
VERIFY_OK = "Código verificado correctamente."
VERIFY_ALREADY = "La cuenta ya estaba verificada."
VERIFY_REJECTED = "Código de verificación incorrecto."
VERIFY_FAILED = "Error al verificar el código."
LOGIN_OK = "Inicio de sesión exitoso"
LOGIN_FAILED = "Error al iniciar sesión."
LOGIN_INVALID = "Teléfono o contraseña incorrectos."
LOGIN_UNVERIFIED = "La cuenta aún no ha sido verificada."
PURCHASE_OK = "Compra de tokens exitosa"
PURCHASE_FAILED = "Error al procesar la compra de tokens."
USER_NOT_FOUND = "Usuario no encontrado."

UNKNOWN_ERROR = "Error desconocido"
CODE_MISMATCH = "El código no coincide"
CODE_EXPIRED = "El código expiró, solicita uno nuevo"
MISSING_PHONE = "Falta el teléfono del usuario"
CODE_LOCKED = "Demasiados intentos fallidos, solicita un código nuevo"
CODE_RESENT = "Te enviamos un código nuevo para verificar tu cuenta"
SESSION_REQUIRED = "Inicia sesión para comprar tokens."


class Currency(str, Enum):
    USD = "USD"
    COP = "COP"

    @classmethod
    def parse(cls, value: Any) -> "Currency":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Moneda no soportada: {value!r}") from None


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


# ------------------------------------ requests ------------------------------------
@dataclass
class RegistrationRequest:
    name: str
    lastname: str
    email: str
    remotejid: str
    password: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RegistrationRequest":
        return cls(
            name=_text(payload, "name"),
            lastname=_text(payload, "lastname"),
            email=_text(payload, "email"),
            remotejid=_text(payload, "remotejid"),
            password=_text(payload, "password"),
        )


@dataclass
class CodeVerificationRequest:
    code: str
    email: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CodeVerificationRequest":
        return cls(code=_text(payload, "code"), email=_text(payload, "email"))


@dataclass
class LoginRequest:
    phone: str
    password: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LoginRequest":
        return cls(phone=_text(payload, "phone"), password=_text(payload, "password"))


@dataclass
class TokenPurchaseRequest:
    amount: int
    currency: Currency
    phone: Optional[str] = None
    # Issued by login; the REST surface requires it before crediting.
    session_token: Optional[str] = None

    def to_payload(self) -> dict:
        payload = {"amount": self.amount, "currency": Currency.parse(self.currency).value}
        if self.phone:
            payload["phone"] = self.phone
        if self.session_token:
            payload["token"] = self.session_token
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenPurchaseRequest":
        phone = payload.get("phone")
        token = payload.get("token")
        return cls(
            amount=to_int(payload.get("amount"), default=0),
            currency=Currency.parse(payload.get("currency")),
            phone=str(phone) if phone else None,
            session_token=str(token) if token else None,
        )


# ------------------------------------ results ------------------------------------
@dataclass
class RegistrationResult:
    success: bool
    message: str
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str = REGISTER_OK) -> "RegistrationResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: Optional[str], message: Optional[str] = None) -> "RegistrationResult":
        return cls(success=False, message=message or REGISTER_FAILED, error=error or UNKNOWN_ERROR)


@dataclass
class CodeVerificationResult:
    success: bool
    message: str
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str = VERIFY_OK) -> "CodeVerificationResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: Optional[str], message: Optional[str] = None) -> "CodeVerificationResult":
        return cls(success=False, message=message or VERIFY_FAILED, error=error or UNKNOWN_ERROR)


@dataclass
class LoginResult:
    success: bool
    message: str
    error: Optional[str] = None
    session_token: Optional[str] = None

    @classmethod
    def ok(cls, session_token: Optional[str] = None, message: str = LOGIN_OK) -> "LoginResult":
        return cls(success=True, message=message, session_token=session_token)

    @classmethod
    def fail(cls, error: Optional[str], message: Optional[str] = None) -> "LoginResult":
        return cls(success=False, message=message or LOGIN_FAILED, error=error or UNKNOWN_ERROR)


@dataclass
class TokenPurchaseResult:
    success: bool
    message: str
    tokens_added: Optional[int] = None
    balance: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, tokens_added: int, balance: Optional[int] = None, message: str = PURCHASE_OK) -> "TokenPurchaseResult":
        return cls(success=True, message=message, tokens_added=tokens_added, balance=balance)

    @classmethod
    def fail(cls, error: Optional[str], message: Optional[str] = None) -> "TokenPurchaseResult":
        return cls(success=False, message=message or PURCHASE_FAILED, error=error or UNKNOWN_ERROR)
