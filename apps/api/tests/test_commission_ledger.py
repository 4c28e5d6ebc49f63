from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from referralhub import audit, events
from referralhub.core.config import Settings
from referralhub.core.database import Base
from referralhub.errors import InvalidTransitionError
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import AuthorizationError, CompanyContext
from referralhub.workflow.orchestrator import WorkflowOrchestrator


COMPANY_ID = uuid.UUID("44444444-4444-4444-8444-444444444444")


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_trails() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()


def _ctx(role: str = "admin") -> CompanyContext:
    return CompanyContext(user_id="user-1", company_id=COMPANY_ID, role=role, correlation_id="corr-ledger")


@pytest.fixture()
def orchestrator(db_session: Session) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(SqlAlchemyGateway(db_session, _ctx()), Settings(workflow_poll_delay_seconds=0.0))


def _won_deal(db_session: Session, orchestrator: WorkflowOrchestrator, amount: str = "5000", rate: str = "10"):
    gateway = SqlAlchemyGateway(db_session, _ctx())
    referrer = gateway.insert(
        "referrer",
        {
            "name": "Cam",
            "email": "cam@example.com",
            "commission_rate": Decimal(rate),
            "referral_code": f"REF{uuid.uuid4().hex[:8].upper()}",
        },
    )
    lead = gateway.insert(
        "lead",
        {"referrer_id": referrer.id, "name": "Lead", "email": "lead@example.com", "status": "qualified"},
    )
    return orchestrator.deals.create_deal(_ctx(), lead.id, amount, initial_status="won")


def test_create_for_deal_is_idempotent(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    first = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]

    again = orchestrator.commissions.create_for_deal(_ctx(), deal)

    assert again.id == first.id
    assert len(orchestrator.commissions.list_entries(_ctx())) == 1


def test_rate_change_after_creation_does_not_recompute(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    SqlAlchemyGateway(db_session, _ctx()).update("referrer", deal.referrer_id, {"commission_rate": Decimal("50")})

    entry = orchestrator.commissions.create_for_deal(_ctx(), deal)

    assert entry.amount == Decimal("500")


def test_status_moves_forward_only(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    entry = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]

    approved = orchestrator.commissions.advance_status(_ctx(), entry.id, "approved")
    assert approved.status == "approved"

    with pytest.raises(InvalidTransitionError):
        orchestrator.commissions.advance_status(_ctx(), entry.id, "pending")
    with pytest.raises(InvalidTransitionError):
        orchestrator.commissions.advance_status(_ctx(), entry.id, "cancelled")

    same = orchestrator.commissions.advance_status(_ctx(), entry.id, "approved")
    assert same.status == "approved"


def test_pending_cannot_skip_approval(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    entry = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]

    with pytest.raises(InvalidTransitionError):
        orchestrator.commissions.advance_status(_ctx(), entry.id, "paid")
    assert orchestrator.commissions.get_entry(_ctx(), entry.id).status == "pending"
    assert orchestrator.leads.get_lead(_ctx(), deal.lead_id).status == "qualified"

    orchestrator.commissions.advance_status(_ctx(), entry.id, "approved")
    paid = orchestrator.commissions.advance_status(_ctx(), entry.id, "paid")

    assert paid.status == "paid"
    assert orchestrator.leads.get_lead(_ctx(), deal.lead_id).status == "converted"


def test_paying_with_deleted_lead_still_commits_payment(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    entry = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]
    SqlAlchemyGateway(db_session, _ctx()).delete("lead", deal.lead_id)

    orchestrator.commissions.advance_status(_ctx(), entry.id, "approved")
    paid = orchestrator.commissions.advance_status(_ctx(), entry.id, "paid")

    assert paid.status == "paid"


def test_paying_with_deleted_deal_still_commits_payment(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    entry = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]
    SqlAlchemyGateway(db_session, _ctx()).delete("deal", deal.id)

    orchestrator.commissions.advance_status(_ctx(), entry.id, "approved")
    paid = orchestrator.commissions.advance_status(_ctx(), entry.id, "paid")

    assert paid.status == "paid"
    assert orchestrator.leads.get_lead(_ctx(), deal.lead_id).status == "qualified"


def test_totals_group_amounts_by_status(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    first = _won_deal(db_session, orchestrator, amount="1000")
    second = _won_deal(db_session, orchestrator, amount="3000")
    second_entry = orchestrator.commissions.list_entries(_ctx(), deal_id=second.id)[0]
    orchestrator.commissions.advance_status(_ctx(), second_entry.id, "approved")

    totals = orchestrator.commissions.totals(_ctx())
    assert totals.pending == Decimal("100")
    assert totals.approved == Decimal("300")
    assert totals.paid == Decimal("0")

    per_referrer = orchestrator.commissions.totals(_ctx(), referrer_id=first.referrer_id)
    assert per_referrer.pending == Decimal("100")
    assert per_referrer.approved == Decimal("0")


def test_advance_status_requires_admin(db_session: Session, orchestrator: WorkflowOrchestrator) -> None:
    deal = _won_deal(db_session, orchestrator)
    entry = orchestrator.commissions.list_entries(_ctx(), deal_id=deal.id)[0]

    with pytest.raises(AuthorizationError):
        orchestrator.commissions.advance_status(_ctx("member"), entry.id, "approved")
