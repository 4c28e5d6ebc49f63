from __future__ import annotations

from typing import Any

from sqlalchemy.sql import Select

from referralhub import audit
from referralhub.platform.security.context import CompanyContext
from referralhub.platform.security.errors import AuthorizationError


def apply_company_scope(query: Select[Any], ctx: CompanyContext) -> Select[Any]:
    """Restrict a query to the caller's company, and to the caller's own rows for referrers."""

    if ctx.is_system and ctx.company_id is None:
        return query
    if not ctx.is_system and ctx.role is None and ctx.referrer_id is None:
        _emit_scope_denied(resource="query", action="read", scope_value=str(ctx.company_id), ctx=ctx)
        raise AuthorizationError("No membership in this company")

    for description in query.column_descriptions:
        model = description.get("entity")
        if model is None:
            continue
        if hasattr(model, "company_id"):
            query = query.where(getattr(model, "company_id") == ctx.company_id)
        if ctx.is_referrer and hasattr(model, "referrer_id"):
            query = query.where(getattr(model, "referrer_id") == ctx.referrer_id)

    return query


def validate_company_write(resource: str, payload: dict[str, Any], ctx: CompanyContext, *, action: str = "write") -> None:
    """Reject writes that target another company than the caller's."""

    if ctx.is_system and ctx.company_id is None:
        return

    company_value = payload.get("company_id")
    if ctx.company_id is None or (company_value is not None and str(company_value) != str(ctx.company_id)):
        _emit_scope_denied(resource=resource, action=action, scope_value=str(company_value), ctx=ctx)
        raise AuthorizationError(f"Out-of-scope company for resource '{resource}'")


def require_admin(resource: str, ctx: CompanyContext, *, action: str) -> None:
    if ctx.is_admin:
        return
    _emit_scope_denied(resource=resource, action=action, scope_value=str(ctx.role), ctx=ctx)
    raise AuthorizationError(f"Admin role required to {action} '{resource}'")


def _emit_scope_denied(*, resource: str, action: str, scope_value: str, ctx: CompanyContext) -> None:
    audit.record(
        actor_user_id=ctx.user_id,
        company_id=ctx.company_id,
        entity_type="security.scope",
        entity_id="scope",
        action="scope.denied",
        before=None,
        after={
            "resource": resource,
            "action": action,
            "scope_value": scope_value,
            "role": ctx.role,
        },
        correlation_id=ctx.correlation_id,
    )
