from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from referralhub import audit, events, metrics
from referralhub.commissions.rules import validate_amount
from referralhub.commissions.service import CommissionLedgerController
from referralhub.core.config import Settings, get_settings
from referralhub.deals.models import Deal
from referralhub.errors import (
    DependentRecordsError,
    DuplicateDealError,
    InvalidTransitionError,
    PartialWorkflowError,
    ReferralError,
)
from referralhub.leads.models import Lead
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.platform.security import CompanyContext, require_admin


logger = logging.getLogger("referralhub.deals")

DEAL_STATUSES = ("pending", "won", "lost")
CLOSED_DEAL_STATUSES = frozenset({"won", "lost"})
DEALABLE_LEAD_STATUSES = frozenset({"qualified", "converted"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class DealLifecycleController:
    """Deal status transitions: pending -> won, pending -> lost.

    Winning a deal ledgers its commission exactly once. A closed deal accepts
    amount edits but no further status changes.
    """

    gateway: PersistenceGateway
    commissions: CommissionLedgerController
    settings: Settings = field(default_factory=get_settings)

    def get_deal(self, ctx: CompanyContext, deal_id: uuid.UUID) -> Deal:
        return self.gateway.get("deal", deal_id)

    def list_deals(
        self,
        ctx: CompanyContext,
        *,
        status: str | None = None,
        lead_id: uuid.UUID | None = None,
        referrer_id: uuid.UUID | None = None,
    ) -> list[Deal]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        if lead_id is not None:
            filters["lead_id"] = lead_id
        if referrer_id is not None:
            filters["referrer_id"] = referrer_id
        return self.gateway.find("deal", filters)

    def ensure_no_deal(self, lead_id: uuid.UUID) -> None:
        if self.gateway.find_one("deal", {"lead_id": lead_id}) is not None:
            raise DuplicateDealError(lead_id)

    def create_deal(
        self,
        ctx: CompanyContext,
        lead_id: uuid.UUID,
        amount: Any,
        initial_status: str = "pending",
    ) -> Deal:
        require_admin("deal", ctx, action="create")
        value = validate_amount(amount)
        if initial_status not in DEAL_STATUSES:
            raise InvalidTransitionError("deal", "new", initial_status, message=f"unknown deal status '{initial_status}'")

        lead = self.gateway.get("lead", lead_id)
        if lead.status not in DEALABLE_LEAD_STATUSES:
            raise InvalidTransitionError(
                "deal",
                lead.status,
                initial_status,
                message=f"a deal needs a qualified lead; this lead is '{lead.status}'",
            )
        self.ensure_no_deal(lead.id)

        deal = self.insert_for_lead(ctx, lead, value, initial_status)
        if initial_status in CLOSED_DEAL_STATUSES:
            metrics.observe_deal_closed(initial_status)
        if initial_status == "won":
            self._ledger_commission(ctx, deal, workflow="deal.create")
        return deal

    def insert_for_lead(self, ctx: CompanyContext, lead: Lead, amount: Decimal, status: str = "pending") -> Deal:
        """Persist a deal for ``lead``. The caller has already run the duplicate check."""

        deal = self.gateway.insert(
            "deal",
            {
                "company_id": lead.company_id,
                "lead_id": lead.id,
                "referrer_id": lead.referrer_id,
                "amount": amount,
                "status": status,
                "closed_at": utcnow() if status == "won" else None,
            },
        )
        logger.info(
            "deal.created",
            extra={
                "deal_id": str(deal.id),
                "lead_id": str(lead.id),
                "company_id": str(deal.company_id),
                "status": status,
            },
        )
        self._record(ctx, deal, "deal.created", before=None)
        return deal

    def update_deal(self, ctx: CompanyContext, deal_id: uuid.UUID, fields: Mapping[str, Any]) -> Deal:
        require_admin("deal", ctx, action="update")
        deal = self.gateway.get("deal", deal_id)

        changes: dict[str, Any] = {}
        if fields.get("amount") is not None:
            changes["amount"] = validate_amount(fields["amount"])

        new_status = fields.get("status")
        if new_status is not None:
            if deal.status in CLOSED_DEAL_STATUSES:
                raise InvalidTransitionError(
                    "deal", deal.status, new_status, message=f"deal is already {deal.status}"
                )
            if new_status not in DEAL_STATUSES:
                raise InvalidTransitionError("deal", deal.status, new_status, message=f"unknown deal status '{new_status}'")
            if new_status != deal.status:
                changes["status"] = new_status
                if new_status == "won":
                    changes["closed_at"] = utcnow()

        if not changes:
            return deal

        before = snapshot(deal)
        updated = self.gateway.update("deal", deal.id, changes)
        self._record(ctx, updated, "deal.updated", before=before)

        closed_as = changes.get("status")
        if closed_as in CLOSED_DEAL_STATUSES:
            metrics.observe_deal_closed(closed_as)
            logger.info(
                "deal.closed",
                extra={"deal_id": str(updated.id), "company_id": str(updated.company_id), "status": closed_as},
            )
        if closed_as == "won":
            self._ledger_commission(ctx, updated, workflow="deal.win")
        return updated

    def delete_deal(self, ctx: CompanyContext, deal_id: uuid.UUID) -> None:
        require_admin("deal", ctx, action="delete")
        deal = self.gateway.get("deal", deal_id)
        dependents = self.gateway.find("commission", {"deal_id": deal.id})
        if dependents and self.settings.strict_delete:
            raise DependentRecordsError(
                "deal has commission entries",
                details={"deal_id": str(deal.id), "commission_ids": [str(entry.id) for entry in dependents]},
            )

        before = snapshot(deal)
        self.gateway.delete("deal", deal.id)
        if dependents:
            logger.warning(
                "deal.deleted_with_dependents",
                extra={
                    "deal_id": str(deal_id),
                    "company_id": str(ctx.company_id),
                    "entity_type": "commission",
                    "entity_id": ",".join(str(entry.id) for entry in dependents),
                },
            )
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=ctx.company_id,
            entity_type="deal",
            entity_id=str(deal_id),
            action="deal.deleted",
            before=before,
            after=None,
            correlation_id=ctx.correlation_id,
        )
        events.publish("deal.deleted", ctx.company_id, ctx.user_id, {"deal_id": str(deal_id)})

    def _ledger_commission(self, ctx: CompanyContext, deal: Deal, *, workflow: str) -> None:
        try:
            self.commissions.create_for_deal(ctx, deal)
        except ReferralError as exc:
            metrics.observe_partial_failure(workflow, "commission")
            logger.error(
                "workflow.partial_failure",
                extra={
                    "workflow": workflow,
                    "step": "commission",
                    "deal_id": str(deal.id),
                    "company_id": str(deal.company_id),
                    "error": str(exc),
                },
            )
            raise PartialWorkflowError(
                workflow,
                completed_steps=["deal"],
                failed_step="commission",
                committed=deal,
                cause=exc,
            ) from exc

    def _record(self, ctx: CompanyContext, deal: Deal, action: str, *, before: dict[str, Any] | None) -> None:
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=deal.company_id,
            entity_type="deal",
            entity_id=str(deal.id),
            action=action,
            before=before,
            after=snapshot(deal),
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            action,
            deal.company_id,
            ctx.user_id,
            {
                "deal_id": str(deal.id),
                "lead_id": str(deal.lead_id),
                "amount": str(deal.amount),
                "status": deal.status,
            },
        )
