from __future__ import annotations

from referralhub.errors import ReferralError


class AuthorizationError(ReferralError):
    """Raised when the caller's company scope or role does not allow an action."""

    status_code = 403
    code = "forbidden"
