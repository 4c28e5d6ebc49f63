from __future__ import annotations

import logging
from dataclasses import dataclass

from referralhub import audit, events, metrics
from referralhub.errors import DuplicateLeadError, InvalidReferralCodeError
from referralhub.leads.models import Lead
from referralhub.leads.schemas import PublicLeadCreate
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.referrers.service import ReferrerService


logger = logging.getLogger("referralhub.leads.capture")


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(slots=True)
class PublicLeadCapture:
    """Lead submissions from a referrer's public tracking link."""

    gateway: PersistenceGateway

    def submit_public_lead(self, referral_code: str, payload: PublicLeadCreate) -> Lead:
        lookup = self.gateway.unscoped()
        try:
            referrer = ReferrerService(lookup).resolve_referral_code(referral_code)
        except InvalidReferralCodeError:
            metrics.observe_public_lead("invalid_code")
            raise

        email = normalize_email(str(payload.email))
        existing = lookup.find_one("lead", {"company_id": referrer.company_id, "email": email})
        if existing is not None:
            metrics.observe_public_lead("duplicate")
            logger.info(
                "lead.public_duplicate",
                extra={
                    "company_id": str(referrer.company_id),
                    "referrer_id": str(referrer.id),
                    "email": email,
                    "outcome": "duplicate",
                },
            )
            raise DuplicateLeadError(
                "a lead with this email already exists",
                details={"company_id": str(referrer.company_id)},
            )

        lead = lookup.insert(
            "lead",
            {
                "company_id": referrer.company_id,
                "referrer_id": referrer.id,
                "name": payload.name.strip(),
                "email": email,
                "phone": payload.phone,
                "company_name": payload.company_name,
                "status": "new",
            },
        )
        metrics.observe_public_lead("accepted")
        logger.info(
            "lead.public_submitted",
            extra={
                "lead_id": str(lead.id),
                "company_id": str(lead.company_id),
                "referrer_id": str(referrer.id),
                "outcome": "accepted",
            },
        )
        audit.record(
            actor_user_id="public",
            company_id=lead.company_id,
            entity_type="lead",
            entity_id=str(lead.id),
            action="lead.created",
            before=None,
            after=snapshot(lead),
        )
        events.publish("lead.created", lead.company_id, "public", {"lead_id": str(lead.id), "status": lead.status})
        return lead
