from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


DealStatus = Literal["pending", "won", "lost"]


class DealCreate(BaseModel):
    lead_id: UUID
    amount: Decimal | str
    status: DealStatus = "pending"


class DealUpdate(BaseModel):
    amount: Decimal | str | None = None
    status: DealStatus | None = None


class DealRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    lead_id: UUID
    referrer_id: UUID
    amount: Decimal
    status: DealStatus | str
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime
