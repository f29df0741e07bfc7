from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from contactpro.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("contactpro.request")


def _outcome(status_code: int) -> str:
    if status_code >= 500:
        return "server_error"
    if status_code >= 400:
        return "client_error"
    return "ok"


def _finish(request: Request, status_code: int, started: float, *, failed: bool = False) -> None:
    """Emit the access line and request metrics once the route has been resolved."""
    elapsed = time.perf_counter() - started
    path = resolve_http_path_label(request)
    observe_http_request(request.method, path, status_code, elapsed)

    fields = {
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(elapsed * 1000, 2),
        "outcome": _outcome(status_code),
    }
    kind = request.path_params.get("kind")
    if kind:
        fields["entity"] = kind

    if failed:
        logger.error("http.error", exc_info=True, extra=fields)
    else:
        logger.info("http.request", extra=fields)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line and request metrics for every call."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _finish(request, 500, started, failed=True)
            raise
        _finish(request, response.status_code, started)
        return response
