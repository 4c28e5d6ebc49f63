from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


PayoutStatus = Literal["pending", "processing", "completed", "failed"]


class PayoutCreate(BaseModel):
    referrer_id: UUID
    amount: Decimal = Field(gt=Decimal("0"))
    payment_method: str | None = None
    notes: str | None = None


class PayoutStatusUpdate(BaseModel):
    status: PayoutStatus
    transaction_id: str | None = None
    notes: str | None = None


class PayoutRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    referrer_id: UUID
    amount: Decimal
    status: PayoutStatus | str
    payment_method: str | None
    transaction_id: str | None
    notes: str | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime
