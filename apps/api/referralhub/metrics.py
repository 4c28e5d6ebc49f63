from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "referralhub_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "referralhub_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

lead_transitions_total = Counter(
    "referralhub_lead_transitions_total",
    "Lead status transitions by target status",
    ["to_status"],
)

qualification_outcomes_total = Counter(
    "referralhub_qualification_outcomes_total",
    "Lead qualification attempts by outcome",
    ["outcome"],
)

deals_closed_total = Counter(
    "referralhub_deals_closed_total",
    "Deals closed by status",
    ["status"],
)

commissions_created_total = Counter(
    "referralhub_commissions_created_total",
    "Commission ledger entries created",
)

commission_transitions_total = Counter(
    "referralhub_commission_transitions_total",
    "Commission status transitions by target status",
    ["to_status"],
)

workflow_partial_failures_total = Counter(
    "referralhub_workflow_partial_failures_total",
    "Multi-step workflows that failed after an earlier step committed",
    ["workflow", "step"],
)

gateway_errors_total = Counter(
    "referralhub_gateway_errors_total",
    "Persistence gateway failures by operation",
    ["operation", "entity_type"],
)

public_leads_total = Counter(
    "referralhub_public_leads_total",
    "Public lead submissions by outcome",
    ["outcome"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(path_format, str) and path_format:
            return _PATH_PARAM_RE.sub("{id}", path_format)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_lead_transition(to_status: str) -> None:
    lead_transitions_total.labels(to_status=to_status).inc()


def observe_qualification(outcome: str) -> None:
    qualification_outcomes_total.labels(outcome=outcome).inc()


def observe_deal_closed(status: str) -> None:
    deals_closed_total.labels(status=status).inc()


def observe_commission_created() -> None:
    commissions_created_total.inc()


def observe_commission_transition(to_status: str) -> None:
    commission_transitions_total.labels(to_status=to_status).inc()


def observe_partial_failure(workflow: str, step: str) -> None:
    workflow_partial_failures_total.labels(workflow=workflow, step=step).inc()


def observe_gateway_error(operation: str, entity_type: str) -> None:
    gateway_errors_total.labels(operation=operation, entity_type=entity_type).inc()


def observe_public_lead(outcome: str) -> None:
    public_leads_total.labels(outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
