from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from referralhub.leads.models import Lead


class AmountPrompt(Protocol):
    """Asks for the deal amount while a lead is being qualified. ``None`` means cancelled."""

    def request_amount(self, lead: Lead) -> Any | None: ...


@dataclass(slots=True)
class FixedAmountPrompt:
    """Answers with an amount supplied up front, e.g. from an HTTP request body."""

    amount: Any

    def request_amount(self, lead: Lead) -> Any | None:
        return self.amount


class CancelledPrompt:
    def request_amount(self, lead: Lead) -> Any | None:
        return None
