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
from referralhub.referrers.models import Referrer


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


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub="partner-7", roles=[], email="p7@example.com")
    get_settings.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health_reports_database(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_me_lists_claimed_referrers(client: TestClient, db_session: Session) -> None:
    company_id = uuid.uuid4()
    linked = Referrer(
        company_id=company_id,
        user_id="partner-7",
        name="Pat",
        email="p7@example.com",
        referral_code="REFME000001",
    )
    db_session.add_all(
        [
            linked,
            Referrer(company_id=company_id, name="Other", email="other@example.com", referral_code="REFME000002"),
        ]
    )
    db_session.commit()

    body = client.get("/me").json()

    assert body["sub"] == "partner-7"
    assert body["referrers"] == [{"id": str(linked.id), "company_id": str(company_id)}]
