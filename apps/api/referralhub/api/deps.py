from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from referralhub.context import get_correlation_id
from referralhub.core.auth import AuthUser, get_current_user as get_auth_user
from referralhub.core.database import get_db
from referralhub.core.rbac import resolve_company_role
from referralhub.errors import PartialWorkflowError, ReferralError
from referralhub.platform.gateway import SqlAlchemyGateway, snapshot
from referralhub.platform.security import CompanyContext
from referralhub.referrers.models import Referrer
from referralhub.workflow.orchestrator import WorkflowOrchestrator


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def referral_error_response(request: Request, exc: ReferralError) -> JSONResponse:
    details = exc.details
    if isinstance(exc, PartialWorkflowError) and exc.committed is not None:
        details = {**(details or {}), "committed": snapshot(exc.committed)}
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=details,
    )


def _parse_uuid_header(raw: str | None, name: str) -> uuid.UUID | None:
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"invalid {name} header") from None


def get_company_context(
    request: Request,
    auth_user: AuthUser = Depends(get_auth_user),
    db: Session = Depends(get_db),
    company_header: str | None = Header(default=None, alias="x-company-id"),
    referrer_header: str | None = Header(default=None, alias="x-referrer-id"),
) -> CompanyContext:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    company_id = _parse_uuid_header(company_header, "x-company-id")

    role = resolve_company_role(auth_user.roles)
    # Outside its listed companies a token carries no company role.
    if auth_user.company_ids is not None and (company_id is None or str(company_id) not in auth_user.company_ids):
        role = None

    referrer_id = _parse_uuid_header(referrer_header, "x-referrer-id")
    if referrer_id is not None and role is None:
        owner = db.scalar(
            select(Referrer.user_id).where(Referrer.id == referrer_id, Referrer.company_id == company_id)
        )
        if owner is None or owner != auth_user.sub:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="referrer is not linked to this account")

    return CompanyContext(
        user_id=auth_user.sub,
        company_id=company_id,
        role=role,
        referrer_id=referrer_id,
        correlation_id=correlation_id,
    )


def get_gateway(
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context),
) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(db, ctx)


def get_public_gateway(request: Request, db: Session = Depends(get_db)) -> SqlAlchemyGateway:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return SqlAlchemyGateway(db, CompanyContext.system(correlation_id=correlation_id))


def get_orchestrator(gateway: SqlAlchemyGateway = Depends(get_gateway)) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(gateway)
