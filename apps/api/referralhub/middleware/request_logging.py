from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from referralhub.metrics import observe_http_request, resolve_http_path_label

logger = logging.getLogger("referralhub.request")


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in (401, 403, 429):
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One structured record and one metrics observation per request.

    The path label is resolved after dispatch, once the route has matched, so
    ids never leak into metric labels.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._emit(request, 500, started, exc_info=True)
            raise
        self._emit(request, response.status_code, started)
        return response

    def _emit(self, request: Request, status_code: int, started: float, *, exc_info: bool = False) -> None:
        duration = time.perf_counter() - started
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=status_code, duration=duration)
        logger.log(
            _level_for(status_code),
            "http.error" if exc_info else "http.request",
            exc_info=exc_info,
            extra={
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(duration * 1000, 2),
                "company_id": request.headers.get("x-company-id"),
            },
        )
