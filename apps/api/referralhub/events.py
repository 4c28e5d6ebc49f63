from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from referralhub.context import get_correlation_id

ENVELOPE_VERSION = 1


@dataclass(frozen=True, slots=True)
class DomainEvent:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[DomainEvent], None]


class InProcessEventBus:
    """Synchronous fan-out; handler errors propagate to the publisher."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers[event_name]
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = DomainEvent(name=event_name, payload=payload)
        for handler in tuple(self._handlers.get(event_name, ())):
            handler(event)


event_bus = InProcessEventBus()
published_events: list[dict[str, Any]] = []


def publish(event_type: str, company_id: Any, actor_user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Record and dispatch a referral event such as ``lead.qualified`` or ``commission.paid``.

    The aggregate is the record the event is about, named by the event type's
    prefix; its id is taken from the matching ``<aggregate>_id`` payload key.
    """

    aggregate_type = event_type.split(".", 1)[0]
    aggregate_id = payload.get(f"{aggregate_type}_id")
    envelope: dict[str, Any] = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "version": ENVELOPE_VERSION,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "company_id": str(company_id) if company_id is not None else None,
        "actor_user_id": actor_user_id,
        "aggregate_type": aggregate_type,
        "aggregate_id": str(aggregate_id) if aggregate_id is not None else None,
        "correlation_id": get_correlation_id(),
        "payload": payload,
    }
    published_events.append(envelope)
    event_bus.publish(event_type, envelope)
    return envelope
