"""
API Gateway Rate Limiting - per examinee (or IP).

General API: rate_limit_api_per_minute per examinee. Answer submission also
draws on an hourly grading budget, since every submit may call the oracle.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from checkride.config import get_settings
from checkride.logging_config import get_logger

logger = get_logger(__name__)

EXAMINEE_HEADER = "x-examinee-id"
GRADE_PATH_SUFFIX = "/answers/submit"


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _identifier(request: Request) -> str:
    examinee = (request.headers.get(EXAMINEE_HEADER) or "").strip()
    return f"examinee:{examinee}" if examinee else f"ip:{_get_client_ip(request)}"


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}
        self._window_sec: Dict[str, int] = {}

    def check_and_incr(self, scope: str, identifier: str, limit: int, window_seconds: int) -> bool:
        """True if under limit (and increments); False if over limit (no increment)."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        entry = self._data.get(key)
        if entry is None or now - entry[1] >= self._window_sec.get(key, window_seconds):
            self._data[key] = (1, now)
            self._window_sec[key] = window_seconds
            return True
        count, start = entry
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 7200) -> None:
        """Drop windows older than max_age_seconds."""
        now = time.monotonic()
        for k in [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]:
            self._data.pop(k, None)
            self._window_sec.pop(k, None)

    def reset(self) -> None:
        self._data.clear()
        self._window_sec.clear()


# Single process only; multiple workers each keep their own windows.
_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


def _too_many() -> Response:
    return Response(
        content='{"detail":"Too many requests. Please try again later."}',
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        media_type="application/json",
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limit by scope:
    - api: every /api/v1 request -> per examinee (or IP), per minute
    - grade: POST /api/v1/answers/submit -> per examinee (or IP), per hour
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        path = request.url.path or ""
        if not settings.rate_limit_enabled or not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        store = get_store()
        store.cleanup_old()
        identifier = _identifier(request)

        if not store.check_and_incr("api", identifier, settings.rate_limit_api_per_minute, 60):
            logger.warning("Rate limit exceeded", extra={"scope": "api", "identifier": identifier})
            return _too_many()

        if request.method == "POST" and path.endswith(GRADE_PATH_SUFFIX):
            if not store.check_and_incr("grade", identifier, settings.rate_limit_grade_per_hour, 3600):
                logger.warning("Rate limit exceeded", extra={"scope": "grade", "identifier": identifier})
                return _too_many()

        return await call_next(request)
