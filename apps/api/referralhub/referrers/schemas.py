from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


ReferrerStatus = Literal["active", "inactive", "pending"]


class ReferrerCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    commission_rate: Decimal | str = Decimal("10")
    status: ReferrerStatus = "active"


class ReferrerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    commission_rate: Decimal | str | None = None
    status: ReferrerStatus | None = None
    referral_code: str | None = None


class ReferrerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    user_id: str | None
    name: str
    email: str
    phone: str | None
    commission_rate: Decimal
    status: ReferrerStatus | str
    referral_code: str | None
    created_at: datetime
    updated_at: datetime


class ReferralCodeRead(BaseModel):
    """Public view of a referrer, returned to the lead capture page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    name: str
    referral_code: str


class ReferrerClaimRequest(BaseModel):
    referral_code: str = Field(min_length=1)
    email: EmailStr | None = None
