from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from contactpro.core.config import Settings
from contactpro.core.errors import NetworkOrServerError, NotFoundError
from contactpro.records import EntityKind, Record, get_mapping
from contactpro.repository.base import SERVER_QUERY_DIMENSIONS, ListQuery, repository_call


logger = logging.getLogger("contactpro.repository.hosted")


def build_hosted_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.hosted_api_base_url.rstrip("/"),
        timeout=settings.hosted_timeout_seconds,
        headers={
            "Accept": "application/json",
            "X-Apper-Project-Id": settings.hosted_project_id,
            "X-Apper-Public-Key": settings.hosted_public_key,
        },
        transport=transport,
    )


class HostedRecordRepository:
    """Record repository backed by the hosted record-storage API.

    Reads page through the whole table (the API caps a page at ``page_size``).
    When ``server_query`` is enabled, search, equality filters and ordering are
    pushed to the API and the caller skips client-side derivation for them.
    """

    def __init__(
        self,
        kind: EntityKind | str,
        client: httpx.AsyncClient,
        *,
        page_size: int = 100,
        server_query: bool = False,
    ) -> None:
        self.kind = EntityKind(kind)
        self.mapping = get_mapping(self.kind)
        self.server_dimensions = SERVER_QUERY_DIMENSIONS if server_query else frozenset()
        self._client = client
        self._page_size = page_size

    @property
    def _records_path(self) -> str:
        return f"/tables/{self.mapping.table}/records"

    async def list(self, query: ListQuery | None = None) -> list[Record]:
        async with repository_call(self.kind, "list") as span:
            body = self._query_body(query)
            records: list[Record] = []
            offset = 0
            while True:
                body["pagingInfo"] = {"limit": self._page_size, "offset": offset}
                payload = await self._send("POST", f"{self._records_path}/query", "list", json=body)
                page = payload.get("data") or []
                records.extend(self._to_record(raw, "list") for raw in page)
                if len(page) < self._page_size:
                    break
                offset += self._page_size
            span.set_attribute("count", len(records))
            return records

    async def get_by_id(self, record_id: int) -> Record:
        async with repository_call(self.kind, "get", record_id):
            payload = await self._send("GET", f"{self._records_path}/{int(record_id)}", "get", record_id=record_id)
            data = payload.get("data")
            if not data:
                raise NotFoundError(self.kind.value, record_id)
            return self._to_record(data, "get")

    async def create(self, fields: Mapping[str, Any]) -> Record:
        async with repository_call(self.kind, "create"):
            body = {"records": [self.mapping.to_wire(fields)]}
            payload = await self._send("POST", self._records_path, "create", json=body)
            return self._to_record(self._single_result(payload, "create"), "create")

    async def update(self, record_id: int, fields: Mapping[str, Any]) -> Record:
        async with repository_call(self.kind, "update", record_id):
            body = {"records": [{"Id": int(record_id), **self.mapping.to_wire(fields)}]}
            payload = await self._send("PATCH", self._records_path, "update", record_id=record_id, json=body)
            return self._to_record(self._single_result(payload, "update"), "update")

    async def delete(self, record_id: int) -> bool:
        async with repository_call(self.kind, "delete", record_id):
            body = {"RecordIds": [int(record_id)]}
            payload = await self._send("DELETE", self._records_path, "delete", json=body)
            results = payload.get("results")
            if not results:
                logger.warning(
                    "repository.delete_unconfirmed",
                    extra={"entity": self.kind.value, "record_id": record_id, "outcome": "unconfirmed"},
                )
                return False
            failed = [result for result in results if not result.get("success")]
            if failed:
                logger.warning(
                    "repository.delete_rejected",
                    extra={"entity": self.kind.value, "record_id": record_id, "error": failed[0].get("message")},
                )
            return not failed

    def _query_body(self, query: ListQuery | None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "fields": [{"field": {"Name": name}} for name in self.mapping.wire_fields()],
            "orderBy": [{"fieldName": self.mapping.created_field, "sorttype": "DESC"}],
        }
        if query is None or not self.server_dimensions:
            return body

        term = query.search.strip()
        if term and query.search_fields:
            body["whereGroups"] = [
                {
                    "operator": "OR",
                    "subGroups": [
                        {
                            "conditions": [
                                {"fieldName": self.mapping.wire_name(name), "operator": "Contains", "values": [term]}
                                for name in query.search_fields
                            ],
                            "operator": "OR",
                        }
                    ],
                }
            ]

        where = [
            {"FieldName": self.mapping.wire_name(key), "Operator": "ExactMatch", "Values": [value]}
            for key, value in query.filters.items()
        ]
        if where:
            body["where"] = where

        if query.sort_field:
            body["orderBy"] = [
                {
                    "fieldName": self.mapping.wire_name(query.sort_field),
                    "sorttype": "DESC" if query.descending else "ASC",
                }
            ]
        return body

    def _to_record(self, raw: Any, operation: str) -> Record:
        if not isinstance(raw, Mapping):
            raise NetworkOrServerError(self.kind.value, operation, "Malformed record")
        try:
            return self.mapping.from_wire(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "repository.malformed_record",
                extra={"entity": self.kind.value, "operation": operation, "error": repr(exc)},
            )
            raise NetworkOrServerError(self.kind.value, operation, "Malformed record") from exc

    def _single_result(self, payload: dict[str, Any], operation: str) -> dict[str, Any]:
        results = payload.get("results")
        if not results:
            raise NetworkOrServerError(self.kind.value, operation, f"No results returned from {operation} operation")
        failed = [result for result in results if not result.get("success")]
        if failed:
            message = failed[0].get("message") or f"Failed to {operation} {self.kind.value}"
            raise NetworkOrServerError(self.kind.value, operation, message)
        data = results[0].get("data")
        if not isinstance(data, dict):
            raise NetworkOrServerError(self.kind.value, operation, "Result carried no record")
        return data

    async def _send(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        record_id: int | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise NetworkOrServerError(self.kind.value, operation, str(exc) or exc.__class__.__name__) from exc

        if response.status_code == 404 and record_id is not None:
            raise NotFoundError(self.kind.value, record_id)
        if response.status_code >= 400:
            raise NetworkOrServerError(
                self.kind.value,
                operation,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkOrServerError(self.kind.value, operation, "Invalid JSON response") from exc
        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise NetworkOrServerError(self.kind.value, operation, message or "Request was not successful")
        return payload
