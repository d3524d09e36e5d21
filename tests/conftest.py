# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.helpers import BYPASS_TOKEN, FakeClock
from webchat_guard.api.v1.dependencies import get_challenge_verifier_dep
from webchat_guard.api.v1.endpoints.abuse import get_clock_dep
from webchat_guard.core.security import create_service_token
from webchat_guard.db.session import Base
from webchat_guard.db.session import get_db as app_get_session
from webchat_guard.main import app as fastapi_app
from webchat_guard.models import Organization
from webchat_guard.services.challenge import ChallengeConfig, ChallengeVerifier

TEST_DB_URL = "sqlite://"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FakeClock:
    """Return a clock frozen at a fixed instant until advanced."""
    return FakeClock()


@pytest.fixture()
def verifier() -> ChallengeVerifier:
    """Return a verifier that only knows the local bypass token."""
    return ChallengeVerifier(ChallengeConfig(bypass_token=BYPASS_TOKEN))


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    clock: FakeClock,
    verifier: ChallengeVerifier,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_clock_dep] = lambda: clock
    app.dependency_overrides[get_challenge_verifier_dep] = lambda: verifier
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def service_headers() -> dict[str, str]:
    """Return authorization headers for an internal calling service."""
    token = create_service_token("webchat-handler")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def free_org(db_session: Session) -> Organization:
    """Create an organization on the free plan."""
    org = Organization(name="Free Org", plan="free")
    db_session.add(org)
    db_session.flush()
    return org


@pytest.fixture()
def paid_org(db_session: Session) -> Organization:
    """Create an organization on a paid plan."""
    org = Organization(name="Paid Org", plan="pro")
    db_session.add(org)
    db_session.flush()
    return org
