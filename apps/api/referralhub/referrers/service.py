from __future__ import annotations

import logging
import secrets
import string
import uuid
from dataclasses import dataclass, field
from typing import Any

from referralhub import audit, events
from referralhub.commissions.rules import validate_commission_rate
from referralhub.core.config import Settings, get_settings
from referralhub.errors import (
    DependentRecordsError,
    DuplicateError,
    InvalidReferralCodeError,
    ReferrerClaimError,
    ValidationError,
)
from referralhub.platform.gateway import PersistenceGateway, snapshot
from referralhub.platform.security import CompanyContext, require_admin
from referralhub.referrers.models import Referrer
from referralhub.referrers.schemas import ReferrerCreate, ReferrerUpdate
from referralhub.workflow.polling import wait_for_row


logger = logging.getLogger("referralhub.referrers")

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 5


def generate_referral_code(prefix: str = "REF", length: int = 8) -> str:
    return prefix + "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


@dataclass(slots=True)
class ReferrerService:
    gateway: PersistenceGateway
    settings: Settings = field(default_factory=get_settings)

    def get_referrer(self, ctx: CompanyContext, referrer_id: uuid.UUID) -> Referrer:
        return self.gateway.get("referrer", referrer_id)

    def list_referrers(self, ctx: CompanyContext, *, status: str | None = None) -> list[Referrer]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status
        return self.gateway.find("referrer", filters)

    def create_referrer(self, ctx: CompanyContext, payload: ReferrerCreate) -> Referrer:
        require_admin("referrer", ctx, action="create")
        data = payload.model_dump(mode="python")
        data["commission_rate"] = validate_commission_rate(data["commission_rate"])
        data["referral_code"] = self._allocate_code()

        referrer = self.gateway.insert("referrer", data)
        logger.info(
            "referrer.created",
            extra={"referrer_id": str(referrer.id), "company_id": str(referrer.company_id)},
        )
        self._record(ctx, referrer, "referrer.created", before=None)
        return referrer

    def update_referrer(self, ctx: CompanyContext, referrer_id: uuid.UUID, payload: ReferrerUpdate) -> Referrer:
        require_admin("referrer", ctx, action="update")
        changes = payload.model_dump(mode="python", exclude_unset=True)
        referrer = self.gateway.get("referrer", referrer_id)

        if "referral_code" in changes:
            if changes.pop("referral_code") != referrer.referral_code:
                raise ValidationError("referral_code cannot be changed", details={"referrer_id": str(referrer_id)})
        if changes.get("commission_rate") is not None:
            changes["commission_rate"] = validate_commission_rate(changes["commission_rate"])
        changes = {key: value for key, value in changes.items() if value is not None}
        if not changes:
            return referrer

        before = snapshot(referrer)
        updated = self.gateway.update("referrer", referrer.id, changes)
        self._record(ctx, updated, "referrer.updated", before=before)
        return updated

    def delete_referrer(self, ctx: CompanyContext, referrer_id: uuid.UUID) -> None:
        require_admin("referrer", ctx, action="delete")
        referrer = self.gateway.get("referrer", referrer_id)
        if self.settings.strict_delete and self.gateway.find("lead", {"referrer_id": referrer.id}):
            raise DependentRecordsError("referrer has leads", details={"referrer_id": str(referrer.id)})

        before = snapshot(referrer)
        self.gateway.delete("referrer", referrer.id)
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=ctx.company_id,
            entity_type="referrer",
            entity_id=str(referrer_id),
            action="referrer.deleted",
            before=before,
            after=None,
            correlation_id=ctx.correlation_id,
        )
        events.publish("referrer.deleted", ctx.company_id, ctx.user_id, {"referrer_id": str(referrer_id)})

    def resolve_referral_code(self, code: str) -> Referrer:
        """Public lookup across all companies."""

        normalized = code.strip()
        referrer = self.gateway.unscoped().find_one("referrer", {"referral_code": normalized}) if normalized else None
        if referrer is None:
            raise InvalidReferralCodeError("referral code not found", details={"referral_code": code})
        return referrer

    def claim_referrer(
        self,
        ctx: CompanyContext,
        code: str,
        identity_email: str | None,
        submitted_email: str | None = None,
    ) -> Referrer:
        """Link the caller's identity to the referrer holding ``code``.

        ``identity_email`` comes from the verified token and must match the
        referrer's email (case-insensitive). An email typed into the claim form
        is only accepted when it is the same address. The referrer must not
        already belong to another identity.
        """

        email = (identity_email or "").strip().lower()
        if not email:
            raise ReferrerClaimError("the signed-in identity has no verified email")
        if submitted_email is not None and submitted_email.strip().lower() != email:
            raise ReferrerClaimError("submitted email does not match the signed-in identity")

        referrer = self.resolve_referral_code(code)
        if referrer.user_id is not None and referrer.user_id != ctx.user_id:
            raise ReferrerClaimError(
                "referrer is already linked to another account",
                details={"referrer_id": str(referrer.id)},
            )
        if referrer.email.strip().lower() != email:
            logger.warning("referrer.claim_rejected", extra={"referrer_id": str(referrer.id), "email": email})
            raise ReferrerClaimError("email does not match the referrer", details={"referrer_id": str(referrer.id)})

        before = snapshot(referrer)
        updated = self.gateway.unscoped().update(
            "referrer",
            referrer.id,
            {"user_id": ctx.user_id, "email": email},
        )
        # wait until the link is visible to the cross-company lookup
        linked = wait_for_row(
            self.gateway.unscoped(),
            "referrer",
            {"id": referrer.id, "user_id": ctx.user_id},
            attempts=self.settings.workflow_poll_attempts,
            delay_seconds=self.settings.workflow_poll_delay_seconds,
        )
        if linked is not None:
            updated = linked
        logger.info(
            "referrer.claimed",
            extra={"referrer_id": str(updated.id), "company_id": str(updated.company_id)},
        )
        self._record(ctx, updated, "referrer.claimed", before=before)
        return updated

    def _allocate_code(self) -> str:
        lookup = self.gateway.unscoped()
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_referral_code(self.settings.referral_code_prefix, self.settings.referral_code_length)
            if lookup.find_one("referrer", {"referral_code": code}) is None:
                return code
            logger.warning("referrer.code_collision", extra={"attempts": attempt})
        raise DuplicateError("could not allocate a unique referral code", details={"attempts": MAX_CODE_ATTEMPTS})

    def _record(
        self,
        ctx: CompanyContext,
        referrer: Referrer,
        action: str,
        *,
        before: dict[str, Any] | None,
    ) -> None:
        audit.record(
            actor_user_id=ctx.user_id,
            company_id=referrer.company_id,
            entity_type="referrer",
            entity_id=str(referrer.id),
            action=action,
            before=before,
            after=snapshot(referrer),
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            action,
            referrer.company_id,
            ctx.user_id,
            {"referrer_id": str(referrer.id), "referral_code": referrer.referral_code, "status": referrer.status},
        )
