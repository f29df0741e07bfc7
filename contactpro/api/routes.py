from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from contactpro.api.errors import crm_error_response, error_response
from contactpro.core.config import Settings
from contactpro.core.errors import CrmError
from contactpro.forms import SubmitOutcome, SubmitStatus
from contactpro.lists import ListStatus, SortDirection
from contactpro.metrics import generate_metrics_payload, metrics_content_type
from contactpro.records import EntityKind
from contactpro.workspace import Workspace


router = APIRouter()
screens_router = APIRouter(prefix="/api/screens", tags=["screens"])
views_router = APIRouter(prefix="/api", tags=["views"])


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _submit_response(request: Request, kind: EntityKind, outcome: SubmitOutcome, *, created: bool) -> JSONResponse:
    if outcome.status is SubmitStatus.INVALID:
        return error_response(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=f"crm_{kind.value}_validation_failed",
            message="Invalid fields",
            details=outcome.errors,
        )
    if outcome.status is SubmitStatus.BUSY:
        return error_response(
            request,
            status_code=status.HTTP_409_CONFLICT,
            code=f"crm_{kind.value}_submit_in_progress",
            message="A submission is already in progress",
        )
    if outcome.status is SubmitStatus.FAILED or outcome.record is None:
        return error_response(
            request,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code=f"crm_{kind.value}_save_failed",
            message=f"Failed to save {kind.value}. Please try again.",
            details=str(outcome.error) if outcome.error else None,
        )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content={
            "record": outcome.record.to_dict(),
            "sync_failed": outcome.sync_failure is not None,
        },
    )


@screens_router.get("/{kind}", response_model=None)
async def read_screen(
    request: Request,
    kind: EntityKind,
    search: str | None = Query(default=None),
    sort: str | None = Query(default=None),
    direction: SortDirection | None = Query(default=None),
    workspace: Workspace = Depends(get_workspace),
) -> dict[str, Any] | JSONResponse:
    controller = workspace.screen(kind)
    try:
        if search is not None:
            controller.set_search_term(search)
        for key in controller.screen.filter_keys:
            if key in request.query_params:
                controller.set_filter(key, request.query_params[key])
        if sort is not None:
            controller.set_sort(sort, direction or SortDirection.ASCENDING)
        elif direction is not None:
            controller.set_sort(controller.sort.field, direction)
    except ValueError as exc:
        return error_response(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=f"crm_{kind.value}_screen_invalid_input",
            message=str(exc),
        )

    if controller.status is ListStatus.IDLE:
        await controller.load()
    else:
        await controller.refresh_view()
    return controller.snapshot().to_dict()


@screens_router.post("/{kind}/reload", response_model=None)
async def reload_screen(
    request: Request,
    kind: EntityKind,
    workspace: Workspace = Depends(get_workspace),
) -> dict[str, Any] | JSONResponse:
    controller = workspace.screen(kind)
    if not await controller.load():
        snapshot = controller.snapshot()
        return error_response(
            request,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code=f"crm_{kind.value}_load_failed",
            message=snapshot.error.message if snapshot.error else f"Failed to load {kind.value}s",
            details=snapshot.error.detail if snapshot.error else None,
        )
    return controller.snapshot().to_dict()


@screens_router.post("/{kind}/records", status_code=status.HTTP_201_CREATED)
async def create_record(
    request: Request,
    kind: EntityKind,
    values: dict[str, Any] = Body(...),
    workspace: Workspace = Depends(get_workspace),
) -> JSONResponse:
    form = workspace.form(kind)
    form.update(values)
    outcome = await form.submit()
    return _submit_response(request, kind, outcome, created=True)


@screens_router.put("/{kind}/records/{record_id}")
async def update_record(
    request: Request,
    kind: EntityKind,
    record_id: int,
    values: dict[str, Any] = Body(...),
    workspace: Workspace = Depends(get_workspace),
) -> JSONResponse:
    try:
        record = await workspace.repositories[kind].get_by_id(record_id)
    except CrmError as exc:
        return crm_error_response(request, exc, code=f"crm_{kind.value}_get_failed")
    form = workspace.form(kind, record)
    form.update(values)
    outcome = await form.submit()
    return _submit_response(request, kind, outcome, created=False)


@screens_router.delete("/{kind}/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    request: Request,
    kind: EntityKind,
    record_id: int,
    workspace: Workspace = Depends(get_workspace),
) -> Response:
    controller = workspace.screen(kind)
    if not await controller.remove(record_id):
        return error_response(
            request,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code=f"crm_{kind.value}_delete_failed",
            message=f"Failed to delete {kind.value}",
            details={"record_id": record_id},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@views_router.get("/pipeline")
async def read_pipeline(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
    board = workspace.pipeline
    if not board.ready:
        await board.load()
    return board.to_dict()


@views_router.get("/dashboard", response_model=None)
async def read_dashboard(
    request: Request,
    workspace: Workspace = Depends(get_workspace),
) -> dict[str, Any] | JSONResponse:
    snapshot = await workspace.dashboard.load()
    if snapshot is None:
        return error_response(
            request,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="crm_dashboard_load_failed",
            message=workspace.dashboard.error or "Failed to load dashboard data",
        )
    return snapshot.to_dict()


@views_router.get("/activity-feed", response_model=None)
async def read_activity_feed(
    request: Request,
    workspace: Workspace = Depends(get_workspace),
) -> dict[str, Any] | JSONResponse:
    days = await workspace.activity_feed.load()
    if days is None:
        return error_response(
            request,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="crm_activity_feed_load_failed",
            message=workspace.activity_feed.error or "Failed to load activities",
        )
    return {"days": [{"label": day.label, "entries": [entry.to_dict() for entry in day.entries]} for day in days]}


@views_router.get("/notifications")
def read_notifications(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
    return {"notifications": [notification.to_payload() for notification in workspace.notifications.drain()]}


@router.get("/health", tags=["system"])
def health(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
        "backend": settings.record_backend,
    }


@router.get("/metrics", tags=["system"])
def metrics(settings: Settings = Depends(get_app_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())


router.include_router(screens_router)
router.include_router(views_router)
