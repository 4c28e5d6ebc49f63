from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from referralhub.core.auth import AuthUser, get_current_user
from referralhub.core.config import get_settings
from referralhub.core.database import Base, get_db
from referralhub.main import app
from referralhub.middleware.rate_limit import reset_rate_limiter
from referralhub.platform.gateway import SqlAlchemyGateway
from referralhub.platform.security import CompanyContext


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
def company_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def acting_user() -> dict[str, AuthUser]:
    return {"user": AuthUser(sub="admin-1", roles=["admin"])}


@pytest.fixture()
def client(db_session: Session, acting_user: dict[str, AuthUser]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return acting_user["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _seed(db_session: Session, company_id: uuid.UUID, *, user_id: str | None = None) -> dict[str, str]:
    gateway = SqlAlchemyGateway(db_session, CompanyContext(user_id="seed", company_id=company_id, role="admin"))
    referrer = gateway.insert(
        "referrer",
        {
            "name": "Rosa",
            "email": "rosa@example.com",
            "commission_rate": Decimal("10"),
            "referral_code": f"REF{uuid.uuid4().hex[:8].upper()}",
            "user_id": user_id,
        },
    )
    lead = gateway.insert("lead", {"referrer_id": referrer.id, "name": "Lee", "email": "lee@example.com"})
    return {"referrer_id": str(referrer.id), "lead_id": str(lead.id)}


def test_other_company_rows_are_invisible(client: TestClient, db_session: Session, company_id: uuid.UUID) -> None:
    seeded = _seed(db_session, company_id)
    other = str(uuid.uuid4())

    listing = client.get("/api/leads", headers={"x-company-id": other})
    assert listing.status_code == 200
    assert listing.json() == []

    direct = client.get(f"/api/leads/{seeded['lead_id']}", headers={"x-company-id": other})
    assert direct.status_code == 404


def test_token_scoped_to_other_companies_is_denied(
    client: TestClient,
    db_session: Session,
    company_id: uuid.UUID,
    acting_user: dict[str, AuthUser],
) -> None:
    _seed(db_session, company_id)
    acting_user["user"] = AuthUser(sub="admin-2", roles=["admin"], company_ids=[str(uuid.uuid4())])

    response = client.get("/api/leads", headers={"x-company-id": str(company_id)})

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_writes_without_company_are_denied(client: TestClient) -> None:
    response = client.post("/api/referrers", json={"name": "Rosa", "email": "rosa@example.com"})
    assert response.status_code == 403


def test_invalid_company_header_is_bad_request(client: TestClient) -> None:
    response = client.get("/api/leads", headers={"x-company-id": "not-a-uuid"})
    assert response.status_code == 400


def test_member_cannot_mutate(client: TestClient, db_session: Session, company_id: uuid.UUID, acting_user: dict[str, AuthUser]) -> None:
    seeded = _seed(db_session, company_id)
    acting_user["user"] = AuthUser(sub="member-1", roles=["member"])
    headers = {"x-company-id": str(company_id)}

    assert client.get("/api/leads", headers=headers).status_code == 200
    response = client.post(f"/api/leads/{seeded['lead_id']}/qualify", json={"amount": "10"}, headers=headers)
    assert response.status_code == 403


def test_linked_referrer_sees_own_dashboard(
    client: TestClient,
    db_session: Session,
    company_id: uuid.UUID,
    acting_user: dict[str, AuthUser],
) -> None:
    seeded = _seed(db_session, company_id, user_id="ref-user")
    acting_user["user"] = AuthUser(sub="ref-user", roles=[])
    headers = {"x-company-id": str(company_id), "x-referrer-id": seeded["referrer_id"]}

    dashboard = client.get("/api/reports/referrer", headers=headers)
    assert dashboard.status_code == 200
    assert dashboard.json()["total_leads"] == 1
    assert dashboard.json()["leads_by_status"] == {"new": 1}

    leads = client.get("/api/reports/referrer/leads", headers=headers)
    assert leads.status_code == 200
    assert [lead["id"] for lead in leads.json()] == [seeded["lead_id"]]

    company_view = client.get("/api/reports/company", headers=headers)
    assert company_view.status_code == 403


def test_unlinked_referrer_header_is_rejected(
    client: TestClient,
    db_session: Session,
    company_id: uuid.UUID,
    acting_user: dict[str, AuthUser],
) -> None:
    seeded = _seed(db_session, company_id, user_id="ref-user")
    acting_user["user"] = AuthUser(sub="someone-else", roles=[])

    response = client.get(
        "/api/reports/referrer",
        headers={"x-company-id": str(company_id), "x-referrer-id": seeded["referrer_id"]},
    )

    assert response.status_code == 403


def test_claim_requires_sign_in(client: TestClient, acting_user: dict[str, AuthUser]) -> None:
    acting_user["user"] = AuthUser(sub="anonymous", roles=["guest"])

    response = client.post("/api/referrers/claim", json={"referral_code": "REFANY00000", "email": "a@example.com"})

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"


def test_claim_links_signed_in_user(client: TestClient, db_session: Session, company_id: uuid.UUID, acting_user: dict[str, AuthUser]) -> None:
    seeded = _seed(db_session, company_id)
    code = SqlAlchemyGateway(db_session, CompanyContext.system()).get("referrer", uuid.UUID(seeded["referrer_id"])).referral_code
    acting_user["user"] = AuthUser(sub="new-user", roles=[], email="rosa@example.com")

    response = client.post("/api/referrers/claim", json={"referral_code": code, "email": "rosa@example.com"})

    assert response.status_code == 200
    assert response.json()["user_id"] == "new-user"


def test_claim_uses_the_token_email_not_the_form(
    client: TestClient, db_session: Session, company_id: uuid.UUID, acting_user: dict[str, AuthUser]
) -> None:
    seeded = _seed(db_session, company_id)
    system = SqlAlchemyGateway(db_session, CompanyContext.system())
    code = system.get("referrer", uuid.UUID(seeded["referrer_id"])).referral_code
    acting_user["user"] = AuthUser(sub="intruder", roles=[], email="mallory@example.com")

    typed = client.post("/api/referrers/claim", json={"referral_code": code, "email": "rosa@example.com"})
    omitted = client.post("/api/referrers/claim", json={"referral_code": code})

    assert typed.status_code == 403
    assert typed.json()["code"] == "referrer_claim_rejected"
    assert omitted.status_code == 403
    db_session.expire_all()
    assert system.get("referrer", uuid.UUID(seeded["referrer_id"])).user_id is None


def test_claim_needs_an_email_on_the_token(
    client: TestClient, db_session: Session, company_id: uuid.UUID, acting_user: dict[str, AuthUser]
) -> None:
    seeded = _seed(db_session, company_id)
    code = SqlAlchemyGateway(db_session, CompanyContext.system()).get("referrer", uuid.UUID(seeded["referrer_id"])).referral_code
    acting_user["user"] = AuthUser(sub="no-email", roles=[])

    response = client.post("/api/referrers/claim", json={"referral_code": code, "email": "rosa@example.com"})

    assert response.status_code == 403
    assert response.json()["code"] == "referrer_claim_rejected"


def test_company_dashboard_for_admin(client: TestClient, db_session: Session, company_id: uuid.UUID) -> None:
    _seed(db_session, company_id)

    response = client.get("/api/reports/company", headers={"x-company-id": str(company_id)})

    assert response.status_code == 200
    assert response.json()["total_referrers"] == 1
    assert response.json()["new_leads"] == 1
