from __future__ import annotations

import logging
from typing import Protocol

import httpx
from opentelemetry import trace

from contactpro.core.config import Settings
from contactpro.records import Record


logger = logging.getLogger("contactpro.forms.sync")
tracer = trace.get_tracer("contactpro.forms")


class AdvisorySync(Protocol):
    async def push(self, record: Record) -> None: ...


class AdvisorySyncClient:
    """Pushes newly created contacts to an external system.

    Failures propagate to the caller, which decides that they are advisory.
    """

    def __init__(self, url: str, client: httpx.AsyncClient) -> None:
        self.url = url
        self._client = client

    async def push(self, record: Record) -> None:
        with tracer.start_as_current_span("advisory_sync.push") as span:
            span.set_attribute("entity", record.kind.value)
            span.set_attribute("record_id", record.id)
            response = await self._client.post(self.url, json={"entity": record.kind.value, "record": record.to_dict()})
            response.raise_for_status()
        logger.info("advisory_sync.pushed", extra={"entity": record.kind.value, "record_id": record.id})

    async def aclose(self) -> None:
        await self._client.aclose()


def build_advisory_sync(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> AdvisorySyncClient | None:
    if not settings.advisory_sync_url:
        return None
    client = httpx.AsyncClient(timeout=settings.advisory_sync_timeout_seconds, transport=transport)
    return AdvisorySyncClient(settings.advisory_sync_url, client)
