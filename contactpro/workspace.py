from __future__ import annotations

import logging

from contactpro.core.config import Settings
from contactpro.dashboard import ActivityFeed, DashboardService
from contactpro.forms import AdvisorySyncClient, FormController, build_advisory_sync
from contactpro.lists import ListStateController, PipelineBoard
from contactpro.notifications import NotificationCenter
from contactpro.records import EntityKind, Record
from contactpro.repository import RepositoryRegistry, build_repositories


logger = logging.getLogger("contactpro.workspace")


class Workspace:
    """Everything one signed-in session works with, wired over a single repository set."""

    def __init__(
        self,
        repositories: RepositoryRegistry,
        *,
        settings: Settings | None = None,
        notifications: NotificationCenter | None = None,
        advisory_sync: AdvisorySyncClient | None = None,
    ) -> None:
        settings = settings or Settings()
        self.repositories = repositories
        self.notifications = notifications or NotificationCenter(history_limit=settings.notification_history_limit)
        self.advisory_sync = advisory_sync
        self.screens: dict[EntityKind, ListStateController] = {
            kind: ListStateController(repositories[kind], notifications=self.notifications) for kind in EntityKind
        }
        self.pipeline = PipelineBoard(self.screens[EntityKind.DEAL], self.screens[EntityKind.CONTACT])
        self.dashboard = DashboardService(
            repositories,
            recent_limit=settings.recent_items_limit,
            activity_days=settings.recent_activity_days,
        )
        self.activity_feed = ActivityFeed(repositories)

    def screen(self, kind: EntityKind | str) -> ListStateController:
        return self.screens[EntityKind(kind)]

    def form(self, kind: EntityKind | str, record: Record | None = None) -> FormController:
        kind = EntityKind(kind)
        controller = self.screen(kind)
        # only new contacts are pushed to the advisory system
        advisory = self.advisory_sync if kind is EntityKind.CONTACT and record is None else None
        return FormController(
            self.repositories[kind],
            record=record,
            notifications=self.notifications,
            on_success=controller.refresh_after_mutation,
            advisory_sync=advisory,
        )

    async def aclose(self) -> None:
        self.pipeline.close()
        for controller in self.screens.values():
            controller.close()
        if self.advisory_sync is not None:
            await self.advisory_sync.aclose()
        await self.repositories.aclose()
        logger.info("workspace.closed")


def build_workspace(settings: Settings) -> Workspace:
    return Workspace(
        build_repositories(settings),
        settings=settings,
        advisory_sync=build_advisory_sync(settings),
    )
