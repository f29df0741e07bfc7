from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping

import httpx
from sqlalchemy.orm import Session

from contactpro.core.config import Settings
from contactpro.core.database import Base, create_db_engine, create_session_factory
from contactpro.records import EntityKind
from contactpro.repository.base import RecordRepository
from contactpro.repository.hosted import HostedRecordRepository, build_hosted_client
from contactpro.repository.sql import SqlRecordRepository


logger = logging.getLogger("contactpro.repository")


class RepositoryRegistry:
    """One repository per entity kind, built once and shared by reference."""

    def __init__(
        self,
        repositories: Mapping[EntityKind, RecordRepository],
        *,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._repositories = dict(repositories)
        self._on_close = on_close

    def __getitem__(self, kind: EntityKind | str) -> RecordRepository:
        return self._repositories[EntityKind(kind)]

    def __iter__(self) -> Iterator[EntityKind]:
        return iter(self._repositories)

    def __contains__(self, kind: object) -> bool:
        return kind in self._repositories

    async def aclose(self) -> None:
        if self._on_close is not None:
            await self._on_close()


def build_sql_repositories(
    session_factory: Callable[[], Session],
    *,
    on_close: Callable[[], Awaitable[None]] | None = None,
) -> RepositoryRegistry:
    return RepositoryRegistry(
        {kind: SqlRecordRepository(kind, session_factory) for kind in EntityKind},
        on_close=on_close,
    )


def build_hosted_repositories(settings: Settings, client: httpx.AsyncClient) -> RepositoryRegistry:
    server_query_kinds = {EntityKind(kind) for kind in settings.hosted_server_query_kinds}
    return RepositoryRegistry(
        {
            kind: HostedRecordRepository(
                kind,
                client,
                page_size=settings.hosted_page_size,
                server_query=kind in server_query_kinds,
            )
            for kind in EntityKind
        },
        on_close=client.aclose,
    )


def build_repositories(settings: Settings) -> RepositoryRegistry:
    if settings.record_backend == "hosted":
        logger.info("repository.backend_selected", extra={"operation": "hosted"})
        return build_hosted_repositories(settings, build_hosted_client(settings))
    if settings.record_backend != "sql":
        raise ValueError(f"Unknown record backend: {settings.record_backend}")

    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    logger.info("repository.backend_selected", extra={"operation": "sql"})

    async def dispose() -> None:
        engine.dispose()

    return build_sql_repositories(create_session_factory(engine), on_close=dispose)
