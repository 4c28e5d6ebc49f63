from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from referralhub.api.deps import get_company_context, get_orchestrator, get_public_gateway, referral_error_response
from referralhub.errors import ReferralError
from referralhub.leads.capture import PublicLeadCapture
from referralhub.leads.schemas import (
    LeadCreate,
    LeadEditRequest,
    LeadRead,
    LeadStatus,
    LeadStatusChange,
    PublicLeadCreate,
)
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import CompanyContext
from referralhub.workflow.orchestrator import LeadWorkflowOutcome, WorkflowOrchestrator
from referralhub.workflow.prompts import AmountPrompt, CancelledPrompt, FixedAmountPrompt
from referralhub.workflow.schemas import LeadWorkflowRead, QualificationCheckRead, QualifyRequest


router = APIRouter(prefix="/api/leads", tags=["leads"])
public_router = APIRouter(prefix="/api/public", tags=["public"])


def _prompt_for(amount: object | None) -> AmountPrompt:
    if amount is None:
        return CancelledPrompt()
    return FixedAmountPrompt(amount)


def _outcome_read(outcome: LeadWorkflowOutcome) -> LeadWorkflowRead:
    return LeadWorkflowRead.model_validate(
        {"outcome": outcome.status, "lead": outcome.lead, "deal": outcome.deal},
        from_attributes=True,
    )


@router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    payload: LeadCreate,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> LeadRead | JSONResponse:
    try:
        return orchestrator.leads.create_lead(ctx, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("", response_model=list[LeadRead])
def list_leads(
    request: Request,
    status_filter: LeadStatus | None = Query(default=None, alias="status"),
    referrer_id: uuid.UUID | None = Query(default=None),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[LeadRead] | JSONResponse:
    try:
        return orchestrator.leads.list_leads(ctx, status=status_filter, referrer_id=referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    request: Request,
    lead_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> LeadRead | JSONResponse:
    try:
        return orchestrator.leads.get_lead(ctx, lead_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.patch("/{lead_id}", response_model=LeadWorkflowRead)
def edit_lead(
    request: Request,
    lead_id: uuid.UUID,
    payload: LeadEditRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> LeadWorkflowRead | JSONResponse:
    try:
        draft = orchestrator.begin_edit(ctx, lead_id)
        draft.stage(**payload.model_dump(mode="python", exclude_unset=True, exclude={"deal_amount"}))
        outcome = orchestrator.submit_edit(ctx, draft, _prompt_for(payload.deal_amount))
        return _outcome_read(outcome)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.post("/{lead_id}/status", response_model=LeadWorkflowRead)
def change_lead_status(
    request: Request,
    lead_id: uuid.UUID,
    payload: LeadStatusChange,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> LeadWorkflowRead | JSONResponse:
    try:
        outcome = orchestrator.change_lead_status(ctx, lead_id, payload.status, _prompt_for(payload.amount))
        return _outcome_read(outcome)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{lead_id}/qualification", response_model=QualificationCheckRead)
def check_qualification(
    request: Request,
    lead_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> QualificationCheckRead | JSONResponse:
    try:
        lead = orchestrator.check_qualification(ctx, lead_id)
        return QualificationCheckRead(lead_id=lead.id, can_qualify=True)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.post("/{lead_id}/qualify", response_model=LeadWorkflowRead)
def qualify_lead(
    request: Request,
    lead_id: uuid.UUID,
    payload: QualifyRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> LeadWorkflowRead | JSONResponse:
    staged = payload.fields.model_dump(mode="python", exclude_unset=True) if payload.fields else None
    try:
        outcome = orchestrator.qualify_lead(ctx, lead_id, _prompt_for(payload.amount), staged_edits=staged)
        return _outcome_read(outcome)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    request: Request,
    lead_id: uuid.UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
    ctx: CompanyContext = Depends(get_company_context),
) -> Response:
    try:
        orchestrator.leads.delete_lead(ctx, lead_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@public_router.post(
    "/referral-codes/{referral_code}/leads",
    response_model=LeadRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_public_lead(
    request: Request,
    referral_code: str,
    payload: PublicLeadCreate,
    gateway: SqlAlchemyGateway = Depends(get_public_gateway),
) -> LeadRead | JSONResponse:
    try:
        return PublicLeadCapture(gateway).submit_public_lead(referral_code, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)
