"""Fixed-window request limits per client IP for the public account endpoints."""
from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from fastapi import HTTPException, Request

TOO_MANY_REQUESTS = "Demasiadas solicitudes. Intenta de nuevo en unos instantes."


class _RateLimiter:
    def __init__(self) -> None:
        # key -> (hits in window, window end)
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> int:
        """Count one request; returns seconds to wait when over the limit, else 0."""
        now = time.time()
        with self._lock:
            count, window_end = self._windows.get(key, (0, now + window_seconds))
            if now > window_end:
                count, window_end = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, window_end)
        if count > limit:
            return max(1, int(window_end - now))
        return 0

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


_limiter = _RateLimiter()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    """Raise 429 with Retry-After once `scope` exceeds `limit` calls from the same IP."""
    retry_after = _limiter.hit(f"{scope}:{_client_ip(request)}", limit, window_seconds)
    if retry_after:
        print(f"[rate-limit] {scope} bloqueado para {_client_ip(request)}")
        raise HTTPException(429, TOO_MANY_REQUESTS, headers={"Retry-After": str(retry_after)})


def reset_limits() -> None:
    _limiter.reset()
