from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from referralhub.api.deps import get_company_context, get_orchestrator, referral_error_response
from referralhub.deals.schemas import DealCreate, DealRead, DealStatus, DealUpdate
from referralhub.errors import ReferralError
from referralhub.platform.security import CompanyContext
from referralhub.workflow.orchestrator import WorkflowOrchestrator


router = APIRouter(prefix="/api/deals", tags=["deals"])


@router.post("", response_model=DealRead, status_code=status.HTTP_201_CREATED)
def create_deal(
    request: Request,
    payload: DealCreate,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> DealRead | JSONResponse:
    try:
        return orchestrator.deals.create_deal(ctx, payload.lead_id, payload.amount, payload.status)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("", response_model=list[DealRead])
def list_deals(
    request: Request,
    status_filter: DealStatus | None = Query(default=None, alias="status"),
    lead_id: uuid.UUID | None = Query(default=None),
    referrer_id: uuid.UUID | None = Query(default=None),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[DealRead] | JSONResponse:
    try:
        return orchestrator.deals.list_deals(ctx, status=status_filter, lead_id=lead_id, referrer_id=referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{deal_id}", response_model=DealRead)
def get_deal(
    request: Request,
    deal_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> DealRead | JSONResponse:
    try:
        return orchestrator.deals.get_deal(ctx, deal_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.patch("/{deal_id}", response_model=DealRead)
def update_deal(
    request: Request,
    deal_id: uuid.UUID,
    payload: DealUpdate,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> DealRead | JSONResponse:
    try:
        return orchestrator.deals.update_deal(ctx, deal_id, payload.model_dump(mode="python", exclude_unset=True))
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deal(
    request: Request,
    deal_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> Response:
    try:
        orchestrator.deals.delete_deal(ctx, deal_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
