from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from referralhub.api.deps import get_company_context, get_gateway, referral_error_response
from referralhub.errors import ReferralError
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import CompanyContext
from referralhub.reporting.schemas import CompanyDashboard, ReferrerDashboard, ReferrerLeadRead
from referralhub.reporting.service import ReportingService


router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/company", response_model=CompanyDashboard)
def company_dashboard(
    request: Request,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> CompanyDashboard | JSONResponse:
    try:
        return ReportingService(gateway).company_dashboard(ctx)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/referrer", response_model=ReferrerDashboard)
def referrer_dashboard(
    request: Request,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> ReferrerDashboard | JSONResponse:
    try:
        return ReportingService(gateway).referrer_dashboard(ctx)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/referrer/leads", response_model=list[ReferrerLeadRead])
def referrer_leads(
    request: Request,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[ReferrerLeadRead] | JSONResponse:
    try:
        return ReportingService(gateway).referrer_leads(ctx)
    except ReferralError as exc:
        return referral_error_response(request, exc)
