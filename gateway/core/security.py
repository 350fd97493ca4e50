"""Security helpers (hashing, verification and one-off secrets)."""

from __future__ import annotations

import secrets

from argon2 import PasswordHasher, exceptions as argon_exc

_ph = PasswordHasher()
_PREFIX = "argon2$"
MASK = "***"
_SECRET_KEYS = ("password", "session_token", "token")


def hash_password(password: str) -> str:
    """Create a modern Argon2 hash with a prefix for detection."""
    hashed = _ph.hash(password)
    return f"{_PREFIX}{hashed}"


def is_hashed(stored: str | None) -> bool:
    return bool(stored) and str(stored).startswith(_PREFIX)


def verify_password(password: str, stored_hash: str | None) -> bool:
    stored = stored_hash or ""
    if stored.startswith(_PREFIX):
        hashed = stored[len(_PREFIX) :]
        try:
            return _ph.verify(hashed, password)
        except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False
    # Rows written before hashing was introduced hold the raw password.
    if not stored:
        return False
    return secrets.compare_digest(stored.encode(), (password or "").encode())


def generate_code(digits: int = 6) -> str:
    """Numeric verification code, zero padded."""
    return str(secrets.randbelow(10**digits)).zfill(digits)


def issue_token() -> str:
    return secrets.token_urlsafe(32)


def mask_payload(payload: dict) -> dict:
    """Copy of a request payload that is safe to log."""
    masked = dict(payload)
    for key in _SECRET_KEYS:
        if masked.get(key):
            masked[key] = MASK
    return masked
