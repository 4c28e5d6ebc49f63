from referralhub.commissions.models import CommissionLedgerEntry
from referralhub.commissions.rules import compute_commission, validate_amount, validate_commission_rate
from referralhub.commissions.schemas import CommissionRead, CommissionStatusUpdate, CommissionTotals

__all__ = [
    "CommissionLedgerEntry",
    "CommissionRead",
    "CommissionStatusUpdate",
    "CommissionTotals",
    "compute_commission",
    "validate_amount",
    "validate_commission_rate",
]
