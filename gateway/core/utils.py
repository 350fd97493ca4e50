"""
Utility helpers shared across adapters.
"""

from typing import Optional


def absolute_url(path: str, base: str) -> str:
    """
    Join a relative path onto the configured base URL; absolute URLs pass through.
    """
    base_url = (base or "").rstrip("/")
    if not path:
        return base_url + "/"
    if path.startswith("http://") or path.startswith("https://"):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base_url + path


def to_int(value, default: Optional[int] = 0) -> Optional[int]:
    """Parse integers stored as text (credits, counters)."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default
