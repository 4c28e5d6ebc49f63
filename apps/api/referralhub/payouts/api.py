from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from referralhub.api.deps import get_company_context, get_gateway, referral_error_response
from referralhub.errors import ReferralError
from referralhub.payouts.schemas import PayoutCreate, PayoutRead, PayoutStatus, PayoutStatusUpdate
from referralhub.payouts.service import PayoutService
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import CompanyContext


router = APIRouter(prefix="/api/payouts", tags=["payouts"])


@router.post("", response_model=PayoutRead, status_code=status.HTTP_201_CREATED)
def create_payout(
    request: Request,
    payload: PayoutCreate,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> PayoutRead | JSONResponse:
    try:
        return PayoutService(gateway).create_payout(ctx, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("", response_model=list[PayoutRead])
def list_payouts(
    request: Request,
    status_filter: PayoutStatus | None = Query(default=None, alias="status"),
    referrer_id: uuid.UUID | None = Query(default=None),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[PayoutRead] | JSONResponse:
    try:
        return PayoutService(gateway).list_payouts(ctx, status=status_filter, referrer_id=referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{payout_id}", response_model=PayoutRead)
def get_payout(
    request: Request,
    payout_id: uuid.UUID,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> PayoutRead | JSONResponse:
    try:
        return PayoutService(gateway).get_payout(ctx, payout_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.post("/{payout_id}/status", response_model=PayoutRead)
def update_payout_status(
    request: Request,
    payout_id: uuid.UUID,
    payload: PayoutStatusUpdate,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> PayoutRead | JSONResponse:
    try:
        return PayoutService(gateway).update_payout_status(ctx, payout_id, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)
