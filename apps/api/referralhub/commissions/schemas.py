from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


CommissionStatus = Literal["pending", "approved", "paid"]


class CommissionStatusUpdate(BaseModel):
    status: CommissionStatus


class CommissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    referrer_id: UUID
    deal_id: UUID
    amount: Decimal
    status: CommissionStatus | str
    created_at: datetime
    updated_at: datetime


class CommissionTotals(BaseModel):
    pending: Decimal = Decimal("0")
    approved: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
