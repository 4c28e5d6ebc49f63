from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace

from referralhub import metrics
from referralhub.commissions.models import CommissionLedgerEntry
from referralhub.commissions.rules import validate_amount
from referralhub.commissions.service import CommissionLedgerController
from referralhub.core.config import Settings, get_settings
from referralhub.deals.models import Deal
from referralhub.deals.service import DealLifecycleController
from referralhub.errors import DuplicateDealError, PartialWorkflowError, ReferralError, ValidationError
from referralhub.leads.models import Lead
from referralhub.leads.service import LeadLifecycleController
from referralhub.platform.gateway import PersistenceGateway
from referralhub.platform.security import CompanyContext, require_admin
from referralhub.workflow.prompts import AmountPrompt


logger = logging.getLogger("referralhub.workflow")
tracer = trace.get_tracer("referralhub.workflow")


@dataclass(slots=True)
class LeadWorkflowOutcome:
    """Result of a lead-facing workflow call.

    ``status`` is ``qualified`` when a deal was created, ``cancelled`` when the
    amount prompt was dismissed and ``saved`` for a plain update.
    """

    status: str
    lead: Lead
    deal: Deal | None = None

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass(slots=True)
class LeadEditDraft:
    """Staged form edits for one lead. Nothing here is persisted until submit."""

    lead_id: uuid.UUID
    original_status: str
    fields: dict[str, Any] = field(default_factory=dict)

    def stage(self, **changes: Any) -> None:
        self.fields.update(changes)

    @property
    def staged_status(self) -> str:
        return self.fields.get("status") or self.original_status

    def revert_status(self) -> None:
        self.fields["status"] = self.original_status


class WorkflowOrchestrator:
    """Sequences the lead -> deal -> commission flows over one gateway.

    Every step is committed on its own. When a later step fails the earlier
    ones stay, and the failure is raised as ``PartialWorkflowError``.
    """

    def __init__(self, gateway: PersistenceGateway, settings: Settings | None = None) -> None:
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.leads = LeadLifecycleController(gateway, self.settings)
        self.commissions = CommissionLedgerController(gateway, self.leads)
        self.deals = DealLifecycleController(gateway, self.commissions, self.settings)

    def check_qualification(self, ctx: CompanyContext, lead_id: uuid.UUID) -> Lead:
        """Pre-flight for the amount dialog: raises when the lead cannot be qualified."""

        lead = self.leads.get_lead(ctx, lead_id)
        try:
            self.deals.ensure_no_deal(lead.id)
        except DuplicateDealError:
            metrics.observe_qualification("duplicate")
            logger.info(
                "lead.qualification_rejected",
                extra={"lead_id": str(lead.id), "company_id": str(lead.company_id), "outcome": "duplicate"},
            )
            raise
        self.leads.ensure_can_qualify(lead)
        return lead

    def qualify_lead(
        self,
        ctx: CompanyContext,
        lead_id: uuid.UUID,
        prompt: AmountPrompt,
        staged_edits: Mapping[str, Any] | None = None,
    ) -> LeadWorkflowOutcome:
        """Duplicate check, amount prompt, deal insert, then the lead update.

        The duplicate check is not repeated after the prompt returns, so two
        interleaved qualifications of one lead can both create a deal.
        """

        require_admin("lead", ctx, action="qualify")
        with tracer.start_as_current_span("workflow.qualify_lead") as span:
            span.set_attribute("lead_id", str(lead_id))
            lead = self.check_qualification(ctx, lead_id)

            raw_amount = prompt.request_amount(lead)
            if raw_amount is None:
                metrics.observe_qualification("cancelled")
                logger.info(
                    "lead.qualification_cancelled",
                    extra={"lead_id": str(lead_id), "company_id": str(lead.company_id), "outcome": "cancelled"},
                )
                span.set_attribute("outcome", "cancelled")
                return LeadWorkflowOutcome("cancelled", lead=self.leads.get_lead(ctx, lead_id))

            amount = validate_amount(raw_amount)
            deal = self.deals.insert_for_lead(ctx, lead, amount)
            span.set_attribute("deal_id", str(deal.id))

            try:
                lead = self.leads.commit_qualification(ctx, lead_id, staged_edits)
            except ReferralError as exc:
                metrics.observe_partial_failure("lead.qualify", "lead")
                logger.error(
                    "workflow.partial_failure",
                    extra={
                        "workflow": "lead.qualify",
                        "step": "lead",
                        "lead_id": str(lead_id),
                        "deal_id": str(deal.id),
                        "error": str(exc),
                    },
                )
                span.set_attribute("outcome", "partial_failure")
                raise PartialWorkflowError(
                    "lead.qualify",
                    completed_steps=["deal"],
                    failed_step="lead",
                    committed=deal,
                    cause=exc,
                ) from exc

            metrics.observe_qualification("qualified")
            logger.info(
                "lead.qualified",
                extra={
                    "lead_id": str(lead_id),
                    "deal_id": str(deal.id),
                    "company_id": str(lead.company_id),
                    "outcome": "qualified",
                },
            )
            span.set_attribute("outcome", "qualified")
            return LeadWorkflowOutcome("qualified", lead=lead, deal=deal)

    def begin_edit(self, ctx: CompanyContext, lead_id: uuid.UUID) -> LeadEditDraft:
        lead = self.leads.get_lead(ctx, lead_id)
        return LeadEditDraft(lead_id=lead.id, original_status=lead.status)

    def submit_edit(
        self,
        ctx: CompanyContext,
        draft: LeadEditDraft,
        prompt: AmountPrompt | None = None,
    ) -> LeadWorkflowOutcome:
        if draft.staged_status == "qualified" and draft.original_status != "qualified":
            if prompt is None:
                raise ValidationError("a deal amount is required to qualify a lead")
            edits = {key: value for key, value in draft.fields.items() if key != "status"}
            outcome = self.qualify_lead(ctx, draft.lead_id, prompt, staged_edits=edits)
            if outcome.cancelled:
                draft.revert_status()
            return outcome

        lead = self.leads.update_lead(ctx, draft.lead_id, draft.fields)
        return LeadWorkflowOutcome("saved", lead=lead)

    def cancel_edit(self, draft: LeadEditDraft) -> LeadEditDraft:
        draft.fields.clear()
        return draft

    def change_lead_status(
        self,
        ctx: CompanyContext,
        lead_id: uuid.UUID,
        new_status: str,
        prompt: AmountPrompt | None = None,
    ) -> LeadWorkflowOutcome:
        """Status-control entry point; moving into qualified runs the same flow as an edit."""

        if new_status == "qualified":
            lead = self.leads.get_lead(ctx, lead_id)
            if lead.status == "qualified":
                return LeadWorkflowOutcome("saved", lead=lead)
            if prompt is None:
                raise ValidationError("a deal amount is required to qualify a lead")
            return self.qualify_lead(ctx, lead_id, prompt)

        return LeadWorkflowOutcome("saved", lead=self.leads.set_status(ctx, lead_id, new_status))

    def advance_commission(
        self,
        ctx: CompanyContext,
        entry_id: uuid.UUID,
        new_status: str,
    ) -> CommissionLedgerEntry:
        with tracer.start_as_current_span("workflow.advance_commission") as span:
            span.set_attribute("commission_id", str(entry_id))
            span.set_attribute("to_status", new_status)
            return self.commissions.advance_status(ctx, entry_id, new_status)
