from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from referralhub.commissions.rules import compute_commission, sum_commissions, validate_amount, validate_commission_rate
from referralhub.errors import InvalidAmountError, InvalidCommissionRateError


def test_commission_is_amount_times_rate_over_hundred() -> None:
    assert compute_commission(Decimal("5000"), Decimal("10")) == Decimal("500")
    assert compute_commission(Decimal("1234.56"), Decimal("7.5")) == Decimal("92.592")


def test_commission_keeps_full_precision() -> None:
    result = compute_commission(Decimal("0.000001"), Decimal("0.01"))
    assert result == Decimal("0.0000000001")


def test_zero_rate_yields_zero_commission() -> None:
    assert compute_commission(Decimal("5000"), Decimal("0")) == Decimal("0")


def test_full_rate_yields_full_amount() -> None:
    assert compute_commission(Decimal("250.50"), 100) == Decimal("250.50")


def test_accepts_int_str_and_float_inputs() -> None:
    assert compute_commission(5000, "10") == Decimal("500")
    assert compute_commission("100.10", 10) == Decimal("10.010")
    assert compute_commission(0.1, 50) == Decimal("0.05")


@pytest.mark.parametrize("amount", [0, Decimal("-1"), "-0.01", "abc", "", None, True, float("nan"), "NaN", "Infinity"])
def test_rejects_invalid_amounts(amount: object) -> None:
    with pytest.raises(InvalidAmountError):
        compute_commission(amount, Decimal("10"))


@pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("100.01"), "ten", None, False, float("inf")])
def test_rejects_invalid_rates(rate: object) -> None:
    with pytest.raises(InvalidCommissionRateError):
        compute_commission(Decimal("100"), rate)


def test_validate_amount_normalizes_strings() -> None:
    assert validate_amount(" 42.50 ") == Decimal("42.50")


def test_validate_commission_rate_bounds_are_inclusive() -> None:
    assert validate_commission_rate(0) == Decimal("0")
    assert validate_commission_rate("100") == Decimal("100")


def test_sum_commissions_groups_amounts_by_status() -> None:
    entries = [
        SimpleNamespace(status="pending", amount=Decimal("10.50")),
        SimpleNamespace(status="approved", amount="4"),
        SimpleNamespace(status="pending", amount=Decimal("2")),
        SimpleNamespace(status="paid", amount=Decimal("100")),
    ]

    totals = sum_commissions(entries)

    assert totals.pending == Decimal("12.50")
    assert totals.approved == Decimal("4")
    assert totals.paid == Decimal("100")
    assert sum_commissions([]).paid == Decimal("0")
