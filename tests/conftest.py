"""Shared pytest fixtures for identity registry tests.

Each test gets a fresh in-memory SQLite database.  ``StaticPool`` keeps a
single connection so the ``TestClient`` worker thread sees the same data as
the test body.
"""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"

from typing import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import idreg.core.models  # noqa: E402,F401
from idreg.auth.security import create_access_token  # noqa: E402
from idreg.core.db import Base, get_db  # noqa: E402
from idreg.core.http import get_registry  # noqa: E402
from idreg.main import app  # noqa: E402
from idreg.registry.service import Registry  # noqa: E402


OWNER = "ST1USER"
CONTACT_A = "ST2REC1"
CONTACT_B = "ST3REC2"
CONTACT_C = "ST4REC3"
STRANGER = "ST5OTHER"
AUTHORITY = "ST2AUTH"
CONTACTS = [CONTACT_A, CONTACT_B, CONTACT_C]

IDENTITY_HASH = bytes(32)
PUBLIC_KEY = b"\x02" * 33
BIOMETRIC_HASH = b"\x03" * 32
NEW_PUBLIC_KEY = b"\x04" * 33


class FakeClock:
    """Deterministic clock: every reading advances by one tick."""

    def __init__(self, start: int = 1_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def engine():
    """Create an in-memory SQLite engine with every table."""
    _engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=_engine)
    yield _engine
    Base.metadata.drop_all(bind=_engine)
    _engine.dispose()


@pytest.fixture()
def db_session(engine) -> Generator[Session, None, None]:
    """Provide a session on the per-test database."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def file_sessions(tmp_path) -> Generator[tuple[Session, Session], None, None]:
    """Two independent sessions on one file-backed SQLite database.

    Used to interleave writers; the in-memory engine above shares a single
    connection and cannot.
    """
    _engine = create_engine(f"sqlite:///{tmp_path / 'registry.db'}")
    Base.metadata.create_all(bind=_engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    first, second = SessionFactory(), SessionFactory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        _engine.dispose()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry(db_session: Session, clock: FakeClock) -> Registry:
    """A registry with no authority configured yet."""
    return Registry(db_session, clock=clock)


@pytest.fixture()
def configured_registry(registry: Registry) -> Registry:
    """A registry whose authority gate is already set."""
    registry.set_authority(OWNER, AUTHORITY)
    return registry


@pytest.fixture()
def registered(configured_registry: Registry) -> int:
    """Register the default identity owned by ``OWNER`` and return its id."""
    result = configured_registry.register_identity(
        OWNER, IDENTITY_HASH, PUBLIC_KEY, "Alice", BIOMETRIC_HASH, CONTACTS, 2
    )
    assert result.ok
    return result.value


# ---------------------------------------------------------------------------
# FastAPI TestClient with DB override
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(db_session: Session, clock: FakeClock) -> Generator[TestClient, None, None]:
    """Return a ``TestClient`` that uses the test database session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def _override_get_registry() -> Registry:
        return Registry(db_session, clock=clock)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_registry] = _override_get_registry
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Auth tokens
# ---------------------------------------------------------------------------

@pytest.fixture()
def headers_for() -> Callable[[str], dict[str, str]]:
    """Return a factory building Authorization headers for a principal."""

    def _headers(principal: str) -> dict[str, str]:
        token = create_access_token({"sub": principal})
        return {"Authorization": f"Bearer {token}"}

    return _headers
