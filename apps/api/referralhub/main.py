from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from referralhub.api.routes import router as api_router
from referralhub.core.config import get_settings
from referralhub.events import DomainEvent, event_bus
from referralhub.logging import configure_logging
from referralhub.middleware.correlation_id import CorrelationIdMiddleware
from referralhub.middleware.rate_limit import PublicLeadRateLimitMiddleware
from referralhub.middleware.request_logging import RequestLoggingMiddleware
from referralhub.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("referralhub.lifecycle")
_subscriptions_registered = False

_logged_event_types = [
    "lead.qualified",
    "lead.converted",
    "deal.updated",
    "commission.created",
    "commission.status_changed",
    "payout.updated",
]


def _on_system_started(event: DomainEvent) -> None:
    logger.info("system.started", extra={"status": event.payload.get("service")})


def _on_workflow_event(event: DomainEvent) -> None:
    payload = event.payload.get("payload") or {}
    logger.info(
        "domain.event",
        extra={
            "step": event.name,
            "company_id": event.payload.get("company_id"),
            "entity_type": event.payload.get("aggregate_type"),
            "entity_id": event.payload.get("aggregate_id"),
            "lead_id": payload.get("lead_id"),
            "deal_id": payload.get("deal_id"),
            "commission_id": payload.get("commission_id"),
            "payout_id": payload.get("payout_id"),
            "status": payload.get("status"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        for event_name in _logged_event_types:
            event_bus.subscribe(event_name, _on_workflow_event)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(PublicLeadRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("referralhub-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
