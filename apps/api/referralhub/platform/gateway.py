from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, NoReturn, Protocol

from opentelemetry import trace
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from referralhub import metrics
from referralhub.commissions.models import CommissionLedgerEntry
from referralhub.deals.models import Deal
from referralhub.errors import EntityNotFoundError, GatewayError
from referralhub.leads.models import Lead
from referralhub.payouts.models import Payout
from referralhub.platform.security.context import CompanyContext
from referralhub.platform.security.rls import apply_company_scope, validate_company_write
from referralhub.referrers.models import Referrer


logger = logging.getLogger("referralhub.gateway")
tracer = trace.get_tracer("referralhub.gateway")

ENTITY_MODELS: dict[str, type[Any]] = {
    "referrer": Referrer,
    "lead": Lead,
    "deal": Deal,
    "commission": CommissionLedgerEntry,
    "payout": Payout,
}

Filters = Mapping[str, Any]


class PersistenceGateway(Protocol):
    """CRUD port used by every controller.

    Filters are equality matches; list, tuple and set values match by
    membership and ``None`` matches SQL NULL. Each write is committed on its
    own, so multi-step workflows see earlier steps as durable.
    """

    @property
    def ctx(self) -> CompanyContext: ...

    def find(self, entity_type: str, filters: Filters | None = None, *, order_by: str | None = None) -> list[Any]: ...

    def find_one(self, entity_type: str, filters: Filters) -> Any | None: ...

    def get(self, entity_type: str, entity_id: uuid.UUID) -> Any: ...

    def insert(self, entity_type: str, fields: Mapping[str, Any]) -> Any: ...

    def update(self, entity_type: str, entity_id: uuid.UUID, fields: Mapping[str, Any]) -> Any: ...

    def delete(self, entity_type: str, entity_id: uuid.UUID) -> None: ...

    def unscoped(self) -> PersistenceGateway: ...


def snapshot(row: Any) -> dict[str, Any] | None:
    """Column values of a row as JSON-friendly primitives, for audit and events."""

    if row is None:
        return None
    values: dict[str, Any] = {}
    for attr in sa_inspect(row).mapper.column_attrs:
        value = getattr(row, attr.key)
        if isinstance(value, (uuid.UUID, Decimal)):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        values[attr.key] = value
    return values


def _model_for(entity_type: str) -> type[Any]:
    try:
        return ENTITY_MODELS[entity_type]
    except KeyError:
        raise GatewayError(f"unknown entity type '{entity_type}'", details={"entity_type": entity_type}) from None


@dataclass(slots=True)
class SqlAlchemyGateway:
    session: Session
    ctx: CompanyContext

    def find(self, entity_type: str, filters: Filters | None = None, *, order_by: str | None = None) -> list[Any]:
        model = _model_for(entity_type)
        with tracer.start_as_current_span("gateway.find") as span:
            span.set_attribute("entity_type", entity_type)
            query = apply_company_scope(select(model), self.ctx)
            for key, value in (filters or {}).items():
                column = getattr(model, key)
                if isinstance(value, (list, tuple, set, frozenset)):
                    query = query.where(column.in_(list(value)))
                elif value is None:
                    query = query.where(column.is_(None))
                else:
                    query = query.where(column == value)
            query = query.order_by(*self._ordering(model, order_by))
            try:
                rows = list(self.session.scalars(query).all())
            except SQLAlchemyError as exc:
                self._fail("find", entity_type, exc)
            span.set_attribute("row_count", len(rows))
            return rows

    def find_one(self, entity_type: str, filters: Filters) -> Any | None:
        rows = self.find(entity_type, filters)
        return rows[0] if rows else None

    def get(self, entity_type: str, entity_id: uuid.UUID) -> Any:
        row = self.find_one(entity_type, {"id": entity_id})
        if row is None:
            raise EntityNotFoundError(entity_type, entity_id)
        return row

    def insert(self, entity_type: str, fields: Mapping[str, Any]) -> Any:
        model = _model_for(entity_type)
        data = dict(fields)
        if self.ctx.company_id is not None:
            data.setdefault("company_id", self.ctx.company_id)
        validate_company_write(entity_type, data, self.ctx, action="create")

        with tracer.start_as_current_span("gateway.insert") as span:
            span.set_attribute("entity_type", entity_type)
            row = model(**data)
            try:
                self.session.add(row)
                self.session.commit()
                self.session.refresh(row)
            except SQLAlchemyError as exc:
                self._fail("insert", entity_type, exc)
            span.set_attribute("entity_id", str(row.id))
            return row

    def update(self, entity_type: str, entity_id: uuid.UUID, fields: Mapping[str, Any]) -> Any:
        row = self.get(entity_type, entity_id)
        validate_company_write(entity_type, dict(fields), self.ctx, action="update")

        with tracer.start_as_current_span("gateway.update") as span:
            span.set_attribute("entity_type", entity_type)
            span.set_attribute("entity_id", str(entity_id))
            for key, value in fields.items():
                setattr(row, key, value)
            try:
                self.session.add(row)
                self.session.commit()
                self.session.refresh(row)
            except SQLAlchemyError as exc:
                self._fail("update", entity_type, exc)
            return row

    def delete(self, entity_type: str, entity_id: uuid.UUID) -> None:
        row = self.get(entity_type, entity_id)

        with tracer.start_as_current_span("gateway.delete") as span:
            span.set_attribute("entity_type", entity_type)
            span.set_attribute("entity_id", str(entity_id))
            try:
                self.session.delete(row)
                self.session.commit()
            except SQLAlchemyError as exc:
                self._fail("delete", entity_type, exc)

    def unscoped(self) -> SqlAlchemyGateway:
        """Same session, no company scoping. Used for cross-company referral code lookups."""

        return SqlAlchemyGateway(self.session, CompanyContext.system(correlation_id=self.ctx.correlation_id))

    @staticmethod
    def _ordering(model: type[Any], order_by: str | None) -> list[Any]:
        if order_by is None:
            return [model.created_at.desc(), model.id]
        if order_by.startswith("-"):
            return [getattr(model, order_by[1:]).desc()]
        return [getattr(model, order_by).asc()]

    def _fail(self, operation: str, entity_type: str, exc: SQLAlchemyError) -> NoReturn:
        self.session.rollback()
        metrics.observe_gateway_error(operation, entity_type)
        logger.error(
            "gateway.failed",
            extra={
                "entity_type": entity_type,
                "company_id": str(self.ctx.company_id) if self.ctx.company_id else None,
                "step": operation,
                "error": str(exc),
            },
        )
        raise GatewayError(
            f"{operation} on {entity_type} failed",
            details={"operation": operation, "entity_type": entity_type},
        ) from exc
