from __future__ import annotations

import uuid
from collections.abc import Generator

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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
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
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=["admin", "system.metrics.read"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_workflow_metrics(client: TestClient, company_id: uuid.UUID) -> None:
    headers = {"x-company-id": str(company_id)}
    assert client.get("/health").status_code == 200

    referrer = client.post("/api/referrers", json={"name": "Metrics", "email": "metrics@example.com"}, headers=headers)
    assert referrer.status_code == 201
    lead = client.post(
        "/api/leads",
        json={"referrer_id": referrer.json()["id"], "name": "Metrics Lead", "email": "lead@example.com"},
        headers=headers,
    )
    assert lead.status_code == 201

    qualified = client.post(f"/api/leads/{lead.json()['id']}/qualify", json={"amount": "100"}, headers=headers)
    assert qualified.status_code == 200
    won = client.patch(f"/api/deals/{qualified.json()['deal']['id']}", json={"status": "won"}, headers=headers)
    assert won.status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "referralhub_http_requests_total" in body
    assert "referralhub_http_request_duration_seconds" in body
    assert "referralhub_qualification_outcomes_total" in body
    assert "referralhub_commissions_created_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/leads/{id}/qualify"' in body
    assert 'outcome="qualified"' in body
    assert 'status="won"' in body


def test_metrics_requires_permission(client: TestClient) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub="someone", roles=["admin"])
    assert client.get("/metrics").status_code == 403


def test_metrics_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()
    assert client.get("/metrics").status_code == 404
