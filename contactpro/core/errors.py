from __future__ import annotations

from typing import Any


class CrmError(Exception):
    """Base error for record storage and form operations."""


class NetworkOrServerError(CrmError):
    """A repository call failed outright (transport failure or server-side rejection)."""

    def __init__(self, kind: str, operation: str, message: str, *, status_code: int | None = None) -> None:
        self.kind = kind
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"{kind}.{operation} failed: {message}")


class NotFoundError(CrmError):
    def __init__(self, kind: str, record_id: int) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class FormValidationError(CrmError):
    """Local form checks failed; the draft never reached the repository."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__(f"Invalid fields: {', '.join(sorted(self.errors))}")


class PartialSyncFailure(CrmError):
    """The primary write succeeded but the advisory sync did not."""

    def __init__(self, record: Any, cause: BaseException) -> None:
        self.record = record
        self.cause = cause
        super().__init__(f"advisory sync failed: {cause}")
