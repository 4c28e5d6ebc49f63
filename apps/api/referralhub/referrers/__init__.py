from referralhub.referrers.models import Referrer
from referralhub.referrers.schemas import (
    ReferralCodeRead,
    ReferrerClaimRequest,
    ReferrerCreate,
    ReferrerRead,
    ReferrerUpdate,
)

__all__ = [
    "Referrer",
    "ReferralCodeRead",
    "ReferrerClaimRequest",
    "ReferrerCreate",
    "ReferrerRead",
    "ReferrerUpdate",
]
