import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from referralhub.commissions.api import router as commissions_router
from referralhub.core.auth import AuthUser, get_current_user
from referralhub.core.config import get_settings
from referralhub.core.database import get_db
from referralhub.deals.api import router as deals_router
from referralhub.leads.api import public_router as public_leads_router
from referralhub.leads.api import router as leads_router
from referralhub.metrics import generate_metrics_payload, metrics_content_type
from referralhub.payouts.api import router as payouts_router
from referralhub.referrers.api import public_router as public_referrers_router
from referralhub.referrers.api import router as referrers_router
from referralhub.referrers.models import Referrer
from referralhub.reporting.api import router as reports_router

logger = logging.getLogger("referralhub.api")

router = APIRouter()
router.include_router(referrers_router)
router.include_router(leads_router)
router.include_router(deals_router)
router.include_router(commissions_router)
router.include_router(payouts_router)
router.include_router(reports_router)
router.include_router(public_referrers_router)
router.include_router(public_leads_router)


@router.get("/health", tags=["system"])
def health(db: Session = Depends(get_db)) -> dict[str, str]:
    settings = get_settings()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.warning("health.database_unavailable", exc_info=True)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "service": settings.app_name,
        "environment": settings.app_env,
        "database": database,
    }


@router.get("/me", tags=["auth"])
def me(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)) -> dict[str, Any]:
    """The caller's identity plus the referrer records claimed by it."""

    linked = db.execute(select(Referrer.id, Referrer.company_id).where(Referrer.user_id == user.sub)).all()
    return {
        "sub": user.sub,
        "roles": user.roles,
        "email": user.email,
        "company_ids": user.company_ids,
        "referrers": [{"id": str(row.id), "company_id": str(row.company_id)} for row in linked],
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
