"""Audit trail for referral records.

Each state change on a referrer, lead, deal, commission entry or payout is
appended here with its before/after snapshots, the fields that changed and
the request correlation id.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from referralhub.context import get_correlation_id

logger = logging.getLogger("referralhub.audit")

audit_entries: list[dict[str, Any]] = []


def changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    if before is None or after is None:
        return []
    keys = set(before) | set(after)
    return sorted(key for key in keys if before.get(key) != after.get(key))


def record(
    actor_user_id: str,
    company_id: Any,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "company_id": str(company_id) if company_id is not None else None,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "changed_fields": changed_fields(before, after),
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    logger.debug(
        "audit.recorded",
        extra={
            "company_id": entry["company_id"],
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
        },
    )
    return entry
