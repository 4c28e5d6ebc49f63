from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from referralhub.api.deps import error_response
from referralhub.core.config import get_settings
from referralhub.metrics import observe_public_lead

logger = logging.getLogger("referralhub.rate_limit")

PUBLIC_LEAD_PREFIX = "/api/public/referral-codes/"
WINDOW_SECONDS = 60.0
MAX_TRACKED_CLIENTS = 10_000


@dataclass(slots=True)
class _ClientBucket:
    tokens: float
    touched_at: float


class PublicLeadLimiter:
    """Token buckets keyed by client address, refilled continuously over a minute."""

    def __init__(self, *, max_clients: int = MAX_TRACKED_CLIENTS) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, _ClientBucket] = {}
        self._max_clients = max_clients

    def acquire(self, client: str, per_minute: int) -> int | None:
        """Spend one token for ``client``; return seconds to wait when none is left."""

        if per_minute <= 0:
            return int(WINDOW_SECONDS)
        refill_per_second = per_minute / WINDOW_SECONDS
        now = time.monotonic()

        with self._lock:
            bucket = self._buckets.get(client)
            if bucket is None:
                self._evict_idle(now)
                bucket = self._buckets[client] = _ClientBucket(tokens=float(per_minute), touched_at=now)
            else:
                elapsed = now - bucket.touched_at
                bucket.tokens = min(float(per_minute), bucket.tokens + elapsed * refill_per_second)
                bucket.touched_at = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return None
            return max(1, math.ceil((1.0 - bucket.tokens) / refill_per_second))

    def _evict_idle(self, now: float) -> None:
        if len(self._buckets) < self._max_clients:
            return
        # a bucket untouched for a full window has refilled and carries no state
        for key in [key for key, bucket in self._buckets.items() if now - bucket.touched_at >= WINDOW_SECONDS]:
            del self._buckets[key]

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = PublicLeadLimiter()


def _is_public_lead_submission(request: Request) -> bool:
    path = request.url.path
    return request.method.upper() == "POST" and path.startswith(PUBLIC_LEAD_PREFIX) and path.endswith("/leads")


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


class PublicLeadRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        if settings.rate_limit_disabled or not _is_public_lead_submission(request):
            return await call_next(request)

        client = _client_key(request)
        retry_after = _limiter.acquire(client, settings.rate_limit_public_leads_per_minute)
        if retry_after is None:
            return await call_next(request)

        observe_public_lead("rate_limited")
        logger.warning("lead.public_rate_limited", extra={"client": client, "path": request.url.path})
        response = error_response(
            request,
            status_code=429,
            code="rate_limited",
            message="Too many lead submissions, try again later",
            details={"retry_after": retry_after},
        )
        response.headers["Retry-After"] = str(retry_after)
        return response


def reset_rate_limiter() -> None:
    _limiter.clear()
