from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from referralhub.commissions.schemas import CommissionTotals


class CompanyDashboard(BaseModel):
    total_referrers: int = 0
    active_referrers: int = 0
    total_leads: int = 0
    new_leads: int = 0
    total_deals: int = 0
    won_deals: int = 0
    revenue: Decimal = Decimal("0")
    commissions: CommissionTotals = Field(default_factory=CommissionTotals)


class ReferrerDashboard(BaseModel):
    referrer_id: UUID
    total_leads: int = 0
    leads_by_status: dict[str, int] = Field(default_factory=dict)
    converted_leads: int = 0
    total_deals: int = 0
    won_deals: int = 0
    commissions: CommissionTotals = Field(default_factory=CommissionTotals)


class ReferrerLeadRead(BaseModel):
    """A lead as its referrer sees it: no contact details, coarse status."""

    id: UUID
    name: str
    company_name: str | None
    status: str
    created_at: datetime
