from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from referralhub.core.auth import AuthUser, get_current_user
from referralhub.core.config import get_settings
from referralhub.core.database import Base, get_db
from referralhub.leads.models import Lead
from referralhub.main import app
from referralhub.middleware.rate_limit import reset_rate_limiter


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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="admin-1", roles=["owner"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app, headers={"x-company-id": str(uuid.uuid4())}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _lead(client: TestClient, db_session: Session, rate: str = "10", status: str = "qualified") -> tuple[dict, dict]:
    referrer = client.post(
        "/api/referrers",
        json={"name": "Dana", "email": f"dana-{uuid.uuid4().hex[:6]}@example.com", "commission_rate": rate},
    ).json()
    lead = client.post(
        "/api/leads",
        json={"referrer_id": referrer["id"], "name": "Lead", "email": "lead@example.com"},
    ).json()
    if status != "new":
        db_session.execute(update(Lead).where(Lead.id == uuid.UUID(lead["id"])).values(status=status))
        db_session.commit()
    return referrer, lead


def test_deal_crud_and_duplicate_guard(client: TestClient, db_session: Session) -> None:
    referrer, lead = _lead(client, db_session)

    created = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "700"})
    assert created.status_code == 201
    deal = created.json()
    assert deal["referrer_id"] == referrer["id"]
    assert deal["status"] == "pending"

    duplicate = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "800"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_deal"

    edited = client.patch(f"/api/deals/{deal['id']}", json={"amount": "750"})
    assert Decimal(edited.json()["amount"]) == Decimal("750")

    listed = client.get("/api/deals", params={"lead_id": lead["id"]})
    assert [item["id"] for item in listed.json()] == [deal["id"]]

    assert client.delete(f"/api/deals/{deal['id']}").status_code == 204
    assert client.get(f"/api/deals/{deal['id']}").status_code == 404


def test_closed_deal_rejects_status_change(client: TestClient, db_session: Session) -> None:
    _, lead = _lead(client, db_session)
    deal = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "100", "status": "won"}).json()

    response = client.patch(f"/api/deals/{deal['id']}", json={"status": "lost"})

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


def test_invalid_deal_amount(client: TestClient, db_session: Session) -> None:
    _, lead = _lead(client, db_session)
    response = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "-1"})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_amount"


def test_commission_totals_and_forward_only_status(client: TestClient, db_session: Session) -> None:
    referrer, lead = _lead(client, db_session, rate="20")
    deal = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "1000", "status": "won"}).json()

    entries = client.get("/api/commissions", params={"referrer_id": referrer["id"]}).json()
    assert len(entries) == 1
    assert Decimal(entries[0]["amount"]) == Decimal("200")
    assert entries[0]["deal_id"] == deal["id"]

    approved = client.post(f"/api/commissions/{entries[0]['id']}/status", json={"status": "approved"})
    assert approved.status_code == 200

    backwards = client.post(f"/api/commissions/{entries[0]['id']}/status", json={"status": "pending"})
    assert backwards.status_code == 409

    totals = client.get("/api/commissions/totals").json()
    assert Decimal(totals["approved"]) == Decimal("200")
    assert Decimal(totals["pending"]) == Decimal("0")


def test_payout_lifecycle(client: TestClient, db_session: Session) -> None:
    referrer, _ = _lead(client, db_session)

    created = client.post(
        "/api/payouts",
        json={"referrer_id": referrer["id"], "amount": "200", "payment_method": "paypal"},
    )
    assert created.status_code == 201
    payout = created.json()
    assert payout["status"] == "pending"

    completed = client.post(
        f"/api/payouts/{payout['id']}/status",
        json={"status": "completed", "transaction_id": "txn-9"},
    )
    assert completed.status_code == 200
    assert completed.json()["paid_at"] is not None

    reopened = client.post(f"/api/payouts/{payout['id']}/status", json={"status": "processing"})
    assert reopened.status_code == 409

    assert len(client.get("/api/payouts", params={"status": "completed"}).json()) == 1


def test_referrer_crud(client: TestClient, db_session: Session) -> None:
    created = client.post("/api/referrers", json={"name": "Ola", "email": "ola@example.com", "commission_rate": "12.5"})
    assert created.status_code == 201
    referrer = created.json()

    rejected = client.post("/api/referrers", json={"name": "Bad", "email": "bad@example.com", "commission_rate": "150"})
    assert rejected.status_code == 422
    assert rejected.json()["code"] == "invalid_commission_rate"

    renamed = client.patch(f"/api/referrers/{referrer['id']}", json={"name": "Ola N."})
    assert renamed.json()["name"] == "Ola N."

    code_change = client.patch(f"/api/referrers/{referrer['id']}", json={"referral_code": "REFOTHER001"})
    assert code_change.status_code == 422

    assert client.delete(f"/api/referrers/{referrer['id']}").status_code == 204
    assert client.get(f"/api/referrers/{referrer['id']}").status_code == 404


def test_deal_requires_a_qualified_lead(client: TestClient, db_session: Session) -> None:
    _, lead = _lead(client, db_session, status="new")

    response = client.post("/api/deals", json={"lead_id": lead["id"], "amount": "500"})

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"
    assert client.get("/api/deals", params={"lead_id": lead["id"]}).json() == []
