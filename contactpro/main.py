from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from contactpro import __version__
from contactpro.api.routes import router as api_router
from contactpro.core.config import Settings, get_settings
from contactpro.core.events import SYSTEM_STARTED, InternalEvent, event_bus
from contactpro.logging import configure_logging
from contactpro.middleware.correlation_id import CorrelationIdMiddleware
from contactpro.middleware.request_logging import RequestLoggingMiddleware
from contactpro.otel import server_request_hook, setup_otel
from contactpro.workspace import Workspace, build_workspace


configure_logging()
logger = logging.getLogger("contactpro.lifecycle")


def _on_system_started(event: InternalEvent) -> None:
    logger.info(
        "system_event",
        extra={"operation": event.name, "entity": event.payload.get("service"), "outcome": event.payload.get("backend")},
    )


def create_app(
    settings: Settings | None = None,
    workspace_factory: Callable[[Settings], Workspace] = build_workspace,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.workspace = workspace_factory(settings)
        unsubscribe = event_bus.subscribe(SYSTEM_STARTED, _on_system_started)
        event_bus.publish(SYSTEM_STARTED, {"service": settings.otel_service_name, "backend": settings.record_backend})
        try:
            yield
        finally:
            unsubscribe()
            await app.state.workspace.aclose()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(api_router)

    setup_otel(settings)
    if not getattr(app, "_is_instrumented_by_opentelemetry", False):
        FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)
    return app


app = create_app()
