from __future__ import annotations

from typing import Any


class ReferralError(Exception):
    """Base error for referral workflow failures.

    Each subclass carries the HTTP status and envelope code the API layer
    reports for it.
    """

    status_code = 400
    code = "referral_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ReferralError):
    status_code = 422
    code = "validation_failed"


class InvalidAmountError(ValidationError):
    code = "invalid_amount"


class InvalidCommissionRateError(ValidationError):
    code = "invalid_commission_rate"


class InvalidTransitionError(ValidationError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, entity_type: str, from_status: str, to_status: str, message: str | None = None) -> None:
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"{entity_type} cannot move from '{from_status}' to '{to_status}'",
            details={"entity_type": entity_type, "from_status": from_status, "to_status": to_status},
        )


class InvalidReferralCodeError(ValidationError):
    status_code = 404
    code = "invalid_referral_code"


class ReferrerClaimError(ValidationError):
    status_code = 403
    code = "referrer_claim_rejected"


class DuplicateError(ReferralError):
    status_code = 409
    code = "duplicate"


class DuplicateDealError(DuplicateError):
    code = "duplicate_deal"

    def __init__(self, lead_id: Any) -> None:
        self.lead_id = lead_id
        super().__init__("a deal already exists for this lead", details={"lead_id": str(lead_id)})


class DuplicateLeadError(DuplicateError):
    code = "duplicate_lead"


class GatewayError(ReferralError):
    status_code = 503
    code = "gateway_error"


class EntityNotFoundError(GatewayError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found", details={"entity_type": entity_type, "id": str(entity_id)})


class DependentRecordsError(GatewayError):
    status_code = 409
    code = "dependent_records"


class PartialWorkflowError(ReferralError):
    """A later step failed after earlier steps were committed.

    Committed steps are not rolled back; `committed` holds the snapshot of
    the last durable write so callers can show what is now in effect.
    """

    status_code = 500
    code = "partial_workflow_failure"

    def __init__(
        self,
        workflow: str,
        *,
        completed_steps: list[str],
        failed_step: str,
        committed: Any = None,
        cause: Exception | None = None,
    ) -> None:
        self.workflow = workflow
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.committed = committed
        self.cause = cause
        super().__init__(
            f"{workflow} failed at step '{failed_step}' after {', '.join(completed_steps)} committed",
            details={
                "workflow": workflow,
                "completed_steps": self.completed_steps,
                "failed_step": failed_step,
                "error": str(cause) if cause is not None else None,
            },
        )
