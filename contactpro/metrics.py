from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

crm_repository_calls_total = Counter(
    "crm_repository_calls_total",
    "Record repository calls by entity, operation and outcome",
    ["entity", "operation", "outcome"],
)

crm_repository_call_duration_seconds = Histogram(
    "crm_repository_call_duration_seconds",
    "Record repository call duration in seconds",
    ["entity", "operation"],
)

crm_list_loads_total = Counter(
    "crm_list_loads_total",
    "List screen loads by entity and outcome",
    ["entity", "outcome"],
)

crm_form_submits_total = Counter(
    "crm_form_submits_total",
    "Form submissions by entity and outcome",
    ["entity", "outcome"],
)

crm_advisory_sync_total = Counter(
    "crm_advisory_sync_total",
    "Advisory sync attempts by outcome",
    ["outcome"],
)


_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    return _INT_RE.sub("/{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return path_format
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_repository_call(entity: str, operation: str, outcome: str, duration: float) -> None:
    crm_repository_calls_total.labels(entity=entity, operation=operation, outcome=outcome).inc()
    crm_repository_call_duration_seconds.labels(entity=entity, operation=operation).observe(duration)


def observe_list_load(entity: str, outcome: str) -> None:
    crm_list_loads_total.labels(entity=entity, outcome=outcome).inc()


def observe_form_submit(entity: str, outcome: str) -> None:
    crm_form_submits_total.labels(entity=entity, outcome=outcome).inc()


def observe_advisory_sync(outcome: str) -> None:
    crm_advisory_sync_total.labels(outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
