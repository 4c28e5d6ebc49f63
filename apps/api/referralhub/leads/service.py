from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from referralhub import audit, events, metrics
from referralhub.core.config import Settings, get_settings
from referralhub.errors import DependentRecordsError, EntityNotFoundError, InvalidTransitionError
from referralhub.leads.models import Lead
from referralhub.leads.schemas import LeadCreate
from referralhub.leads.status import LEAD_STATUSES, can_transition
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.platform.security import CompanyContext, require_admin


logger = logging.getLogger("referralhub.leads")

EDITABLE_FIELDS = ("name", "email", "phone", "company_name", "notes", "referrer_id")


@dataclass(slots=True)
class LeadLifecycleController:
    """Lead status transitions.

    Entering ``qualified`` is reserved for the qualify workflow, which creates
    the deal first and then calls :meth:`commit_qualification`. ``set_status``
    and ``update_lead`` refuse it.
    """

    gateway: PersistenceGateway
    settings: Settings = field(default_factory=get_settings)

    def get_lead(self, ctx: CompanyContext, lead_id: uuid.UUID) -> Lead:
        return self.gateway.get("lead", lead_id)

    def list_leads(
        self,
        ctx: CompanyContext,
        *,
        status: str | None = None,
        referrer_id: uuid.UUID | None = None,
    ) -> list[Lead]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        if referrer_id is not None:
            filters["referrer_id"] = referrer_id
        return self.gateway.find("lead", filters)

    def create_lead(self, ctx: CompanyContext, payload: LeadCreate) -> Lead:
        require_admin("lead", ctx, action="create")
        if self.gateway.find_one("referrer", {"id": payload.referrer_id}) is None:
            raise EntityNotFoundError("referrer", payload.referrer_id)

        data = payload.model_dump(mode="python")
        data["status"] = "new"
        lead = self.gateway.insert("lead", data)
        self._record(ctx, lead, "lead.created", before=None)
        return lead

    def update_lead(self, ctx: CompanyContext, lead_id: uuid.UUID, fields: Mapping[str, Any]) -> Lead:
        """Apply a form edit. A status inside the edit follows the same rules as ``set_status``."""

        require_admin("lead", ctx, action="update")
        lead = self.gateway.get("lead", lead_id)

        changes = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS and value is not None}
        if "referrer_id" in changes and changes["referrer_id"] != lead.referrer_id:
            if self.gateway.find_one("referrer", {"id": changes["referrer_id"]}) is None:
                raise EntityNotFoundError("referrer", changes["referrer_id"])

        new_status = fields.get("status")
        if new_status is not None and new_status != lead.status:
            self._check_manual_transition(lead.status, new_status)
            changes["status"] = new_status

        if not changes:
            return lead

        before = snapshot(lead)
        updated = self.gateway.update("lead", lead.id, changes)
        if "status" in changes:
            metrics.observe_lead_transition(changes["status"])
        self._record(ctx, updated, "lead.updated", before=before)
        return updated

    def set_status(self, ctx: CompanyContext, lead_id: uuid.UUID, new_status: str) -> Lead:
        require_admin("lead", ctx, action="update")
        lead = self.gateway.get("lead", lead_id)
        if new_status == lead.status:
            return lead

        self._check_manual_transition(lead.status, new_status)
        before = snapshot(lead)
        updated = self.gateway.update("lead", lead.id, {"status": new_status})
        metrics.observe_lead_transition(new_status)
        logger.info(
            "lead.status_changed",
            extra={
                "lead_id": str(lead.id),
                "company_id": str(lead.company_id),
                "from_status": before["status"] if before else None,
                "to_status": new_status,
            },
        )
        self._record(ctx, updated, "lead.status_changed", before=before)
        return updated

    def ensure_can_qualify(self, lead: Lead) -> None:
        if lead.status != "qualified" and not can_transition(lead.status, "qualified"):
            raise InvalidTransitionError("lead", lead.status, "qualified")

    def commit_qualification(
        self,
        ctx: CompanyContext,
        lead_id: uuid.UUID,
        staged_edits: Mapping[str, Any] | None = None,
    ) -> Lead:
        """Second step of qualification: runs only after the deal row exists."""

        lead = self.gateway.get("lead", lead_id)
        self.ensure_can_qualify(lead)

        changes = {
            key: value for key, value in (staged_edits or {}).items() if key in EDITABLE_FIELDS and value is not None
        }
        changes["status"] = "qualified"

        before = snapshot(lead)
        updated = self.gateway.update("lead", lead.id, changes)
        metrics.observe_lead_transition("qualified")
        self._record(ctx, updated, "lead.qualified", before=before)
        return updated

    def mark_converted(self, ctx: CompanyContext, lead_id: uuid.UUID) -> Lead:
        """System transition from the commission payment cascade. Skips the transition graph."""

        lead = self.gateway.get("lead", lead_id)
        if lead.status == "converted":
            return lead

        before = snapshot(lead)
        updated = self.gateway.update("lead", lead.id, {"status": "converted"})
        metrics.observe_lead_transition("converted")
        self._record(ctx, updated, "lead.converted", before=before)
        return updated

    def delete_lead(self, ctx: CompanyContext, lead_id: uuid.UUID) -> None:
        require_admin("lead", ctx, action="delete")
        lead = self.gateway.get("lead", lead_id)
        dependents = self.gateway.find("deal", {"lead_id": lead.id})
        if dependents and self.settings.strict_delete:
            raise DependentRecordsError(
                "lead has deals",
                details={"lead_id": str(lead.id), "deal_ids": [str(deal.id) for deal in dependents]},
            )

        before = snapshot(lead)
        self.gateway.delete("lead", lead.id)
        if dependents:
            logger.warning(
                "lead.deleted_with_dependents",
                extra={
                    "lead_id": str(lead_id),
                    "company_id": str(ctx.company_id),
                    "entity_type": "deal",
                    "entity_id": ",".join(str(deal.id) for deal in dependents),
                },
            )
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=ctx.company_id,
            entity_type="lead",
            entity_id=str(lead_id),
            action="lead.deleted",
            before=before,
            after=None,
            correlation_id=ctx.correlation_id,
        )
        events.publish("lead.deleted", ctx.company_id, ctx.user_id, {"lead_id": str(lead_id)})

    def _check_manual_transition(self, from_status: str, to_status: str) -> None:
        if to_status not in LEAD_STATUSES:
            raise InvalidTransitionError("lead", from_status, to_status, message=f"unknown lead status '{to_status}'")
        if to_status == "qualified":
            raise InvalidTransitionError(
                "lead",
                from_status,
                to_status,
                message="leads are qualified through the qualify workflow, which creates the deal",
            )
        if not can_transition(from_status, to_status):
            raise InvalidTransitionError("lead", from_status, to_status)

    def _record(self, ctx: CompanyContext, lead: Lead, action: str, *, before: dict[str, Any] | None) -> None:
        after = snapshot(lead)
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=lead.company_id,
            entity_type="lead",
            entity_id=str(lead.id),
            action=action,
            before=before,
            after=after,
            correlation_id=ctx.correlation_id,
        )
        events.publish(action, lead.company_id, ctx.user_id, {"lead_id": str(lead.id), "status": lead.status})
