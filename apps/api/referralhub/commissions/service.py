from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from referralhub import audit, events, metrics
from referralhub.commissions.models import CommissionLedgerEntry
from referralhub.commissions.rules import compute_commission, sum_commissions
from referralhub.commissions.schemas import CommissionTotals
from referralhub.deals.models import Deal
from referralhub.errors import (
    EntityNotFoundError,
    InvalidTransitionError,
    PartialWorkflowError,
    ReferralError,
)
from referralhub.leads.service import LeadLifecycleController
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.platform.security import CompanyContext, require_admin


logger = logging.getLogger("referralhub.commissions")

COMMISSION_STATUS_ORDER = {"pending": 0, "approved": 1, "paid": 2}


@dataclass(slots=True)
class CommissionLedgerController:
    gateway: PersistenceGateway
    leads: LeadLifecycleController

    def get_entry(self, ctx: CompanyContext, entry_id: uuid.UUID) -> CommissionLedgerEntry:
        return self.gateway.get("commission", entry_id)

    def list_entries(
        self,
        ctx: CompanyContext,
        *,
        status: str | None = None,
        referrer_id: uuid.UUID | None = None,
        deal_id: uuid.UUID | None = None,
    ) -> list[CommissionLedgerEntry]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        if referrer_id is not None:
            filters["referrer_id"] = referrer_id
        if deal_id is not None:
            filters["deal_id"] = deal_id
        return self.gateway.find("commission", filters)

    def totals(self, ctx: CompanyContext, *, referrer_id: uuid.UUID | None = None) -> CommissionTotals:
        return sum_commissions(self.list_entries(ctx, referrer_id=referrer_id))

    def create_for_deal(self, ctx: CompanyContext, deal: Deal) -> CommissionLedgerEntry:
        """Ledger the commission for a won deal.

        Returns the existing entry when the deal already has one. The amount
        uses the referrer's rate at this moment and is never recomputed.
        """

        existing = self.gateway.find_one("commission", {"deal_id": deal.id})
        if existing is not None:
            logger.info(
                "commission.already_exists",
                extra={"deal_id": str(deal.id), "commission_id": str(existing.id)},
            )
            return existing

        referrer = self.gateway.find_one("referrer", {"id": deal.referrer_id})
        if referrer is None:
            raise EntityNotFoundError("referrer", deal.referrer_id)

        amount = compute_commission(deal.amount, referrer.commission_rate)
        entry = self.gateway.insert(
            "commission",
            {
                "company_id": deal.company_id,
                "referrer_id": deal.referrer_id,
                "deal_id": deal.id,
                "amount": amount,
                "status": "pending",
            },
        )
        metrics.observe_commission_created()
        logger.info(
            "commission.created",
            extra={
                "commission_id": str(entry.id),
                "deal_id": str(deal.id),
                "referrer_id": str(deal.referrer_id),
                "company_id": str(deal.company_id),
            },
        )
        self._record(ctx, entry, "commission.created", before=None)
        return entry

    def advance_status(self, ctx: CompanyContext, entry_id: uuid.UUID, new_status: str) -> CommissionLedgerEntry:
        require_admin("commission", ctx, action="update")
        entry = self.gateway.get("commission", entry_id)
        if new_status not in COMMISSION_STATUS_ORDER:
            raise InvalidTransitionError(
                "commission", entry.status, new_status, message=f"unknown commission status '{new_status}'"
            )
        if new_status == entry.status:
            return entry
        # pending -> approved -> paid, one step at a time
        if COMMISSION_STATUS_ORDER[new_status] != COMMISSION_STATUS_ORDER[entry.status] + 1:
            raise InvalidTransitionError("commission", entry.status, new_status)

        before = snapshot(entry)
        updated = self.gateway.update("commission", entry.id, {"status": new_status})
        metrics.observe_commission_transition(new_status)
        self._record(ctx, updated, "commission.status_changed", before=before)

        if new_status == "paid":
            self._convert_lead(ctx, updated)
        return updated

    def _convert_lead(self, ctx: CompanyContext, entry: CommissionLedgerEntry) -> None:
        entry_id = entry.id
        deal_id = entry.deal_id
        try:
            deal = self.gateway.find_one("deal", {"id": deal_id})
            if deal is None:
                logger.warning(
                    "commission.deal_missing",
                    extra={"commission_id": str(entry_id), "deal_id": str(deal_id)},
                )
                return
            if deal.status != "won":
                return
            self.leads.mark_converted(ctx, deal.lead_id)
        except EntityNotFoundError:
            logger.warning(
                "commission.lead_missing",
                extra={"commission_id": str(entry_id), "deal_id": str(deal_id)},
            )
        except ReferralError as exc:
            metrics.observe_partial_failure("commission.pay", "lead")
            logger.error(
                "workflow.partial_failure",
                extra={
                    "workflow": "commission.pay",
                    "step": "lead",
                    "commission_id": str(entry_id),
                    "deal_id": str(deal_id),
                    "error": str(exc),
                },
            )
            raise PartialWorkflowError(
                "commission.pay",
                completed_steps=["commission"],
                failed_step="lead",
                committed=entry,
                cause=exc,
            ) from exc

    def _record(
        self,
        ctx: CompanyContext,
        entry: CommissionLedgerEntry,
        action: str,
        *,
        before: dict[str, Any] | None,
    ) -> None:
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=entry.company_id,
            entity_type="commission",
            entity_id=str(entry.id),
            action=action,
            before=before,
            after=snapshot(entry),
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            action,
            entry.company_id,
            ctx.user_id,
            {
                "commission_id": str(entry.id),
                "deal_id": str(entry.deal_id),
                "amount": str(entry.amount),
                "status": entry.status,
            },
        )
