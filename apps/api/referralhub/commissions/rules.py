from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from referralhub.commissions.schemas import CommissionTotals
from referralhub.errors import InvalidAmountError, InvalidCommissionRateError, ValidationError

HUNDRED = Decimal("100")


def _to_decimal(value: Any, error_cls: type[ValidationError], label: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise error_cls(f"{label} must be a number", details={label: value})
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise error_cls(f"{label} must be a number", details={label: value}) from None
    else:
        raise error_cls(f"{label} must be a number", details={label: str(value)})

    if not result.is_finite():
        raise error_cls(f"{label} must be a finite number", details={label: str(value)})
    return result


def validate_amount(amount: Any) -> Decimal:
    """Parse a deal or payout amount; it must be finite and strictly positive."""

    value = _to_decimal(amount, InvalidAmountError, "amount")
    if value <= 0:
        raise InvalidAmountError("amount must be greater than zero", details={"amount": str(value)})
    return value


def validate_commission_rate(rate: Any) -> Decimal:
    value = _to_decimal(rate, InvalidCommissionRateError, "commission_rate")
    if value < 0 or value > HUNDRED:
        raise InvalidCommissionRateError(
            "commission_rate must be between 0 and 100",
            details={"commission_rate": str(value)},
        )
    return value


def compute_commission(deal_amount: Any, commission_rate_percent: Any) -> Decimal:
    """Commission owed on a won deal: ``deal_amount * rate / 100``.

    No rounding is applied. A zero rate yields ``Decimal("0")`` and the ledger
    entry is still created by the caller.
    """

    amount = validate_amount(deal_amount)
    rate = validate_commission_rate(commission_rate_percent)
    return amount * rate / HUNDRED


def sum_commissions(entries: Iterable[Any]) -> CommissionTotals:
    """Total ledger entry amounts per status."""

    sums = {status: Decimal("0") for status in CommissionTotals.model_fields}
    for entry in entries:
        sums[entry.status] = sums.get(entry.status, Decimal("0")) + Decimal(entry.amount)
    return CommissionTotals(**sums)
