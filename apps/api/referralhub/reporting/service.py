from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from referralhub.commissions.rules import sum_commissions
from referralhub.leads.status import referrer_facing_status
from referralhub.platform.gateway import PersistenceGateway
from referralhub.platform.security import AuthorizationError, CompanyContext
from referralhub.reporting.schemas import CompanyDashboard, ReferrerDashboard, ReferrerLeadRead


@dataclass(slots=True)
class ReportingService:
    gateway: PersistenceGateway

    def company_dashboard(self, ctx: CompanyContext) -> CompanyDashboard:
        if ctx.role is None and not ctx.is_system:
            raise AuthorizationError("company membership required")
        referrers = self.gateway.find("referrer")
        leads = self.gateway.find("lead")
        deals = self.gateway.find("deal")
        commissions = self.gateway.find("commission")

        won = [deal for deal in deals if deal.status == "won"]
        return CompanyDashboard(
            total_referrers=len(referrers),
            active_referrers=sum(1 for referrer in referrers if referrer.status == "active"),
            total_leads=len(leads),
            new_leads=sum(1 for lead in leads if lead.status == "new"),
            total_deals=len(deals),
            won_deals=len(won),
            revenue=sum((Decimal(deal.amount) for deal in won), Decimal("0")),
            commissions=sum_commissions(commissions),
        )

    def referrer_dashboard(self, ctx: CompanyContext) -> ReferrerDashboard:
        referrer_id = self._require_referrer(ctx)
        leads = self.gateway.find("lead", {"referrer_id": referrer_id})
        deals = self.gateway.find("deal", {"referrer_id": referrer_id})
        commissions = self.gateway.find("commission", {"referrer_id": referrer_id})

        return ReferrerDashboard(
            referrer_id=referrer_id,
            total_leads=len(leads),
            leads_by_status=dict(Counter(referrer_facing_status(lead.status) for lead in leads)),
            converted_leads=sum(1 for lead in leads if lead.status == "converted"),
            total_deals=len(deals),
            won_deals=sum(1 for deal in deals if deal.status == "won"),
            commissions=sum_commissions(commissions),
        )

    def referrer_leads(self, ctx: CompanyContext) -> list[ReferrerLeadRead]:
        referrer_id = self._require_referrer(ctx)
        return [
            ReferrerLeadRead(
                id=lead.id,
                name=lead.name,
                company_name=lead.company_name,
                status=referrer_facing_status(lead.status),
                created_at=lead.created_at,
            )
            for lead in self.gateway.find("lead", {"referrer_id": referrer_id})
        ]

    def _require_referrer(self, ctx: CompanyContext) -> Any:
        if ctx.referrer_id is None:
            raise AuthorizationError("caller is not linked to a referrer")
        referrer = self.gateway.find_one("referrer", {"id": ctx.referrer_id})
        if referrer is None or (referrer.user_id != ctx.user_id and not ctx.is_admin):
            raise AuthorizationError("caller is not linked to this referrer")
        return referrer.id
