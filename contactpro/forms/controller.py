from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from contactpro.core.errors import CrmError, FormValidationError, PartialSyncFailure
from contactpro.forms.sync import AdvisorySync
from contactpro.forms.validation import default_draft, validate_draft
from contactpro.metrics import observe_advisory_sync, observe_form_submit
from contactpro.notifications import NotificationCenter
from contactpro.records import DealStage, EntityKind, Record
from contactpro.repository.base import RecordRepository


logger = logging.getLogger("contactpro.forms")


class SubmitStatus(str, Enum):
    SAVED = "saved"
    SAVED_SYNC_FAILED = "saved_sync_failed"
    INVALID = "invalid"
    FAILED = "failed"
    BUSY = "busy"


@dataclass(frozen=True)
class SubmitOutcome:
    status: SubmitStatus
    record: Record | None = None
    errors: dict[str, str] = field(default_factory=dict)
    error: CrmError | None = None
    sync_failure: PartialSyncFailure | None = None

    @property
    def saved(self) -> bool:
        return self.status in (SubmitStatus.SAVED, SubmitStatus.SAVED_SYNC_FAILED)


class FormController:
    """Create/edit form for one record kind.

    A successful submit runs ``on_success`` (the owning list's refresh) once,
    then closes the form. Failed submits keep the draft for another attempt.
    """

    def __init__(
        self,
        repository: RecordRepository,
        *,
        record: Record | None = None,
        notifications: NotificationCenter | None = None,
        on_success: Callable[[], Awaitable[Any]] | None = None,
        on_close: Callable[[], None] | None = None,
        advisory_sync: AdvisorySync | None = None,
    ) -> None:
        self.repository = repository
        self.kind = EntityKind(repository.kind)
        self.record = record
        self.notifications = notifications or NotificationCenter()
        self.errors: dict[str, str] = {}
        self.submitting = False
        self.closed = False
        self._on_success = on_success
        self._on_close = on_close
        self._advisory_sync = advisory_sync

        self.draft: dict[str, Any] = default_draft(self.kind)
        if record is not None:
            self.draft.update({name: value for name, value in record.fields.items() if value is not None})

    @property
    def is_edit(self) -> bool:
        return self.record is not None

    def set_field(self, name: str, value: Any) -> None:
        self.draft[name] = value
        self.errors.pop(name, None)
        if self.kind is EntityKind.DEAL and name == "stage":
            stage = DealStage.parse(value)
            if stage is not None:
                self.draft["probability"] = stage.default_probability

    def update(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.set_field(name, value)

    def validate(self) -> dict[str, str]:
        _, self.errors = validate_draft(self.kind, self.draft)
        return dict(self.errors)

    def require_valid(self) -> dict[str, Any]:
        fields, self.errors = validate_draft(self.kind, self.draft)
        if fields is None:
            raise FormValidationError(self.errors)
        return fields

    async def submit(self) -> SubmitOutcome:
        if self.submitting or self.closed:
            return SubmitOutcome(SubmitStatus.BUSY)
        try:
            fields = self.require_valid()
        except FormValidationError as exc:
            observe_form_submit(self.kind.value, "invalid")
            logger.info("form.invalid", extra={"entity": self.kind.value, "error": ",".join(sorted(exc.errors))})
            return SubmitOutcome(SubmitStatus.INVALID, errors=exc.errors)

        self.submitting = True
        try:
            return await self._persist(fields)
        finally:
            self.submitting = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()

    async def _persist(self, fields: dict[str, Any]) -> SubmitOutcome:
        operation = "update" if self.is_edit else "create"
        try:
            if self.record is not None:
                record = await self.repository.update(self.record.id, fields)
            else:
                record = await self.repository.create(fields)
        except CrmError as exc:
            observe_form_submit(self.kind.value, "failed")
            logger.warning(
                "form.submit_failed",
                extra={"entity": self.kind.value, "operation": operation, "error": str(exc)},
            )
            self.notifications.error(f"Failed to save {self.kind.value}. Please try again.", entity=self.kind.value)
            return SubmitOutcome(SubmitStatus.FAILED, error=exc)

        sync_failure = None
        if not self.is_edit and self._advisory_sync is not None:
            sync_failure = await self._run_advisory_sync(self._advisory_sync, record)

        logger.info(
            "form.saved",
            extra={"entity": self.kind.value, "operation": operation, "record_id": record.id},
        )
        if sync_failure is not None:
            self.notifications.info(f"{self.kind.label} created locally, but sync failed.", entity=self.kind.value)
        else:
            verb = "updated" if self.is_edit else "created"
            self.notifications.success(f"{self.kind.label} {verb} successfully!", entity=self.kind.value)

        if self._on_success is not None:
            await self._on_success()
        self.close()

        observe_form_submit(self.kind.value, "saved")
        status = SubmitStatus.SAVED if sync_failure is None else SubmitStatus.SAVED_SYNC_FAILED
        return SubmitOutcome(status, record=record, sync_failure=sync_failure)

    async def _run_advisory_sync(self, sync: AdvisorySync, record: Record) -> PartialSyncFailure | None:
        try:
            await sync.push(record)
        except Exception as exc:
            # the primary write already succeeded; the failure is reported, not raised
            observe_advisory_sync("failed")
            logger.warning(
                "advisory_sync.failed",
                extra={"entity": self.kind.value, "record_id": record.id, "error": str(exc)},
                exc_info=True,
            )
            return PartialSyncFailure(record, exc)
        observe_advisory_sync("ok")
        return None
