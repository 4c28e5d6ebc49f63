from referralhub.leads.models import Lead
from referralhub.leads.schemas import LeadCreate, LeadEditRequest, LeadRead, LeadStatusChange, LeadUpdate, PublicLeadCreate
from referralhub.leads.status import LEAD_STATUSES, LEAD_TRANSITIONS, can_transition, referrer_facing_status

__all__ = [
    "Lead",
    "LeadCreate",
    "LeadEditRequest",
    "LeadRead",
    "LeadStatusChange",
    "LeadUpdate",
    "PublicLeadCreate",
    "LEAD_STATUSES",
    "LEAD_TRANSITIONS",
    "can_transition",
    "referrer_facing_status",
]
