from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from contactpro.context import get_correlation_id
from contactpro.core.errors import CrmError, FormValidationError, NetworkOrServerError, NotFoundError


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def crm_error_response(request: Request, exc: CrmError, *, code: str) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        return error_response(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            code=code,
            message=str(exc),
            details={"kind": exc.kind, "record_id": exc.record_id},
        )
    if isinstance(exc, FormValidationError):
        return error_response(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=code,
            message="Invalid fields",
            details=exc.errors,
        )
    details = None
    if isinstance(exc, NetworkOrServerError):
        details = {"kind": exc.kind, "operation": exc.operation, "status_code": exc.status_code}
    return error_response(
        request,
        status_code=status.HTTP_502_BAD_GATEWAY,
        code=code,
        message=str(exc),
        details=details,
    )
