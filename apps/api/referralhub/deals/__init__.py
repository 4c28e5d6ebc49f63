from referralhub.deals.models import Deal
from referralhub.deals.schemas import DealCreate, DealRead, DealUpdate

__all__ = [
    "Deal",
    "DealCreate",
    "DealRead",
    "DealUpdate",
]
