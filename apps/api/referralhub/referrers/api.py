from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from referralhub.api.deps import (
    error_response,
    get_company_context,
    get_gateway,
    get_public_gateway,
    referral_error_response,
)
from referralhub.core.auth import AuthUser, get_current_user
from referralhub.errors import ReferralError
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import CompanyContext
from referralhub.referrers.schemas import (
    ReferralCodeRead,
    ReferrerClaimRequest,
    ReferrerCreate,
    ReferrerRead,
    ReferrerStatus,
    ReferrerUpdate,
)
from referralhub.referrers.service import ReferrerService


router = APIRouter(prefix="/api/referrers", tags=["referrers"])
public_router = APIRouter(prefix="/api/public", tags=["public"])


@router.post("", response_model=ReferrerRead, status_code=status.HTTP_201_CREATED)
def create_referrer(
    request: Request,
    payload: ReferrerCreate,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> ReferrerRead | JSONResponse:
    try:
        return ReferrerService(gateway).create_referrer(ctx, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("", response_model=list[ReferrerRead])
def list_referrers(
    request: Request,
    status_filter: ReferrerStatus | None = Query(default=None, alias="status"),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> list[ReferrerRead] | JSONResponse:
    try:
        return ReferrerService(gateway).list_referrers(ctx, status=status_filter)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.post("/claim", response_model=ReferrerRead)
def claim_referrer(
    request: Request,
    payload: ReferrerClaimRequest,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
    auth_user: AuthUser = Depends(get_current_user),
) -> ReferrerRead | JSONResponse:
    if ctx.user_id == "anonymous":
        return error_response(
            request,
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="unauthenticated",
            message="sign in to claim a referrer",
        )
    try:
        return ReferrerService(gateway).claim_referrer(
            ctx,
            payload.referral_code,
            auth_user.email,
            str(payload.email) if payload.email is not None else None,
        )
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.get("/{referrer_id}", response_model=ReferrerRead)
def get_referrer(
    request: Request,
    referrer_id: uuid.UUID,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> ReferrerRead | JSONResponse:
    try:
        return ReferrerService(gateway).get_referrer(ctx, referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.patch("/{referrer_id}", response_model=ReferrerRead)
def update_referrer(
    request: Request,
    referrer_id: uuid.UUID,
    payload: ReferrerUpdate,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> ReferrerRead | JSONResponse:
    try:
        return ReferrerService(gateway).update_referrer(ctx, referrer_id, payload)
    except ReferralError as exc:
        return referral_error_response(request, exc)


@router.delete("/{referrer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_referrer(
    request: Request,
    referrer_id: uuid.UUID,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    ctx: CompanyContext = Depends(get_company_context),
) -> Response:
    try:
        ReferrerService(gateway).delete_referrer(ctx, referrer_id)
    except ReferralError as exc:
        return referral_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@public_router.get("/referral-codes/{referral_code}", response_model=ReferralCodeRead)
def resolve_referral_code(
    request: Request,
    referral_code: str,
    gateway: SqlAlchemyGateway = Depends(get_public_gateway),
) -> ReferralCodeRead | JSONResponse:
    try:
        return ReferrerService(gateway).resolve_referral_code(referral_code)
    except ReferralError as exc:
        return referral_error_response(request, exc)
