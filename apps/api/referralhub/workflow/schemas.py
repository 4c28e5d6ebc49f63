from __future__ import annotations

from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from referralhub.deals.schemas import DealRead
from referralhub.leads.schemas import LeadRead, LeadUpdate


class QualifyRequest(BaseModel):
    # null means the amount dialog was dismissed
    amount: Decimal | str | None = None
    fields: LeadUpdate | None = None


class QualificationCheckRead(BaseModel):
    lead_id: UUID
    can_qualify: bool


class LeadWorkflowRead(BaseModel):
    outcome: Literal["qualified", "cancelled", "saved"]
    lead: LeadRead
    deal: DealRead | None = None
