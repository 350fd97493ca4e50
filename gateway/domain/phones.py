"""Domain helpers for phone identifiers (remotejid)."""
from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D+")
PHONE_PATTERN = re.compile(r"[0-9]{7,15}")


def normalize_remotejid(value: str | None) -> str:
    """
    Reduce a phone number or a chat jid ("573001234567@s.whatsapp.net") to
    its digits so registration and login look up the same key.
    """
    raw = (value or "").strip()
    if not raw:
        return ""
    local = raw.split("@", 1)[0]
    return _NON_DIGITS.sub("", local)


def is_valid_phone(value: str | None) -> bool:
    """Return True when the normalized identifier has a plausible length."""
    return bool(PHONE_PATTERN.fullmatch(normalize_remotejid(value)))
