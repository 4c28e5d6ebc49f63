from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from referralhub import audit, events
from referralhub.commissions.rules import validate_amount
from referralhub.errors import EntityNotFoundError, InvalidTransitionError
from referralhub.payouts.models import Payout
from referralhub.payouts.schemas import PayoutCreate, PayoutStatusUpdate
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.platform.security import CompanyContext, require_admin


logger = logging.getLogger("referralhub.payouts")

PAYOUT_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "completed", "failed"}),
    "processing": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


@dataclass(slots=True)
class PayoutService:
    gateway: PersistenceGateway

    def list_payouts(
        self,
        ctx: CompanyContext,
        *,
        status: str | None = None,
        referrer_id: uuid.UUID | None = None,
    ) -> list[Payout]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        if referrer_id is not None:
            filters["referrer_id"] = referrer_id
        return self.gateway.find("payout", filters)

    def get_payout(self, ctx: CompanyContext, payout_id: uuid.UUID) -> Payout:
        return self.gateway.get("payout", payout_id)

    def create_payout(self, ctx: CompanyContext, payload: PayoutCreate) -> Payout:
        require_admin("payout", ctx, action="create")
        amount = validate_amount(payload.amount)
        if self.gateway.find_one("referrer", {"id": payload.referrer_id}) is None:
            raise EntityNotFoundError("referrer", payload.referrer_id)

        payout = self.gateway.insert(
            "payout",
            {
                "referrer_id": payload.referrer_id,
                "amount": amount,
                "status": "pending",
                "payment_method": payload.payment_method,
                "notes": payload.notes,
            },
        )
        logger.info(
            "payout.created",
            extra={"payout_id": str(payout.id), "referrer_id": str(payout.referrer_id), "company_id": str(payout.company_id)},
        )
        self._record(ctx, payout, "payout.created", before=None)
        return payout

    def update_payout_status(self, ctx: CompanyContext, payout_id: uuid.UUID, payload: PayoutStatusUpdate) -> Payout:
        require_admin("payout", ctx, action="update")
        payout = self.gateway.get("payout", payout_id)

        changes: dict[str, Any] = {}
        if payload.status != payout.status:
            if payload.status not in PAYOUT_TRANSITIONS.get(payout.status, frozenset()):
                raise InvalidTransitionError("payout", payout.status, payload.status)
            changes["status"] = payload.status
            if payload.status == "completed":
                changes["paid_at"] = datetime.now(timezone.utc)
        if payload.transaction_id is not None:
            changes["transaction_id"] = payload.transaction_id
        if payload.notes is not None:
            changes["notes"] = payload.notes
        if not changes:
            return payout

        before = snapshot(payout)
        updated = self.gateway.update("payout", payout.id, changes)
        self._record(ctx, updated, "payout.updated", before=before)
        return updated

    def _record(self, ctx: CompanyContext, payout: Payout, action: str, *, before: dict[str, Any] | None) -> None:
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=payout.company_id,
            entity_type="payout",
            entity_id=str(payout.id),
            action=action,
            before=before,
            after=snapshot(payout),
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            action,
            payout.company_id,
            ctx.user_id,
            {"payout_id": str(payout.id), "amount": str(payout.amount), "status": payout.status},
        )
