from __future__ import annotations

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from contactpro.context import correlation_scope


CORRELATION_HEADER = "x-correlation-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Echo or mint ``x-correlation-id`` and bind it for the duration of the request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        with correlation_scope(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            request.state.correlation_id = correlation_id
            span = trace.get_current_span()
            if span.is_recording():
                span.set_attribute("correlation_id", correlation_id)
            response = await call_next(request)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
