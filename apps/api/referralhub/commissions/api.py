from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from referralhub.api.deps import get_company_context, get_orchestrator, referral_error_response
from referralhub.commissions.schemas import CommissionRead, CommissionStatus, CommissionStatusUpdate, CommissionTotals
from referralhub.errors import ReferralError
from referralhub.platform.security import CompanyContext
from referralhub.workflow.orchestrator import WorkflowOrchestrator


router = APIRouter(prefix="/api/commissions", tags=["commissions"])


@router.get("", response_model=list[CommissionRead])
def list_commissions(
    request: Request,
    status_filter: CommissionStatus | None = Query(default=None, alias="status"),
    referrer_id: uuid.UUID | None = Query(default=None),
    deal_id: uuid.UUID | None = Query(default=None),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[CommissionRead] | JSONResponse:
    try:
        return orchestrator.commissions.list_entries(ctx, status=status_filter, referrer_id=referrer_id, deal_id=deal_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/totals", response_model=CommissionTotals)
def commission_totals(
    request: Request,
    referrer_id: uuid.UUID | None = Query(default=None),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> CommissionTotals | JSONResponse:
    try:
        return orchestrator.commissions.totals(ctx, referrer_id=referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{entry_id}", response_model=CommissionRead)
def get_commission(
    request: Request,
    entry_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> CommissionRead | JSONResponse:
    try:
        return orchestrator.commissions.get_entry(ctx, entry_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.post("/{entry_id}/status", response_model=CommissionRead)
def advance_commission(
    request: Request,
    entry_id: uuid.UUID,
    payload: CommissionStatusUpdate,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> CommissionRead | JSONResponse:
    try:
        return orchestrator.advance_commission(ctx, entry_id, payload.status)
    except ReferralError as exc:
        return referral_error_response(request, exc)
