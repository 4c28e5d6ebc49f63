from referralhub.payouts.models import Payout
from referralhub.payouts.schemas import PayoutCreate, PayoutRead, PayoutStatusUpdate

__all__ = [
    "Payout",
    "PayoutCreate",
    "PayoutRead",
    "PayoutStatusUpdate",
]
