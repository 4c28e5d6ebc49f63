from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


LeadStatus = Literal["new", "contacted", "qualified", "converted", "lost"]


class LeadCreate(BaseModel):
    referrer_id: UUID
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    company_name: str | None = None
    notes: str | None = None


class LeadUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    company_name: str | None = None
    notes: str | None = None
    referrer_id: UUID | None = None
    status: LeadStatus | None = None


class LeadEditRequest(LeadUpdate):
    # Asked for only when the edit moves the lead into qualified.
    deal_amount: Decimal | str | None = None


class LeadStatusChange(BaseModel):
    status: LeadStatus
    amount: Decimal | str | None = None


class PublicLeadCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    company_name: str | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    referrer_id: UUID
    name: str
    email: str
    phone: str | None
    company_name: str | None
    status: LeadStatus | str
    notes: str | None
    created_at: datetime
    updated_at: datetime
