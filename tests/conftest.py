# File: tests/conftest.py

"""
Shared fixtures: an in-memory SQLite database, user factories, a fake
payment gateway and a TestClient wired to all of them.
"""

from dataclasses import replace
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.api.deps import get_db, get_identity_verifier, get_payment_gateway
from portal.core.security import JwtIdentityVerifier, create_access_token
from portal.main import app
from portal.models.base import Base
import portal.models.issue  # noqa: F401
import portal.models.payment  # noqa: F401
from portal.models.enums import Role
from portal.models.user import User
from portal.services.gateway import CheckoutSession, GatewaySession, GatewayUnavailable


class FakeGateway:
    """In-memory stand-in for the Stripe checkout API."""

    def __init__(self) -> None:
        self.sessions: dict[str, GatewaySession] = {}
        self.unavailable = False
        self.next_session_id: Optional[str] = None
        self.fetch_calls = 0
        self._counter = 0

    def create_checkout(self, *, amount, currency, purpose, metadata, customer_email=None):
        if self.unavailable:
            raise GatewayUnavailable("gateway down")
        self._counter += 1
        session_id = self.next_session_id or f"sess_fake_{self._counter}"
        self.next_session_id = None
        self.sessions[session_id] = GatewaySession(
            session_id=session_id,
            paid=False,
            amount=amount,
            metadata={k: str(v) for k, v in metadata.items() if v is not None},
        )
        return CheckoutSession(session_id=session_id, url=f"https://checkout.test/{session_id}")

    def fetch_session(self, session_id):
        self.fetch_calls += 1
        if self.unavailable:
            raise GatewayUnavailable("gateway down")
        return self.sessions.get(session_id)

    def mark_paid(self, session_id):
        self.sessions[session_id] = replace(self.sessions[session_id], paid=True)

    def expire(self, session_id):
        self.sessions[session_id] = replace(self.sessions[session_id], expired=True)

    def add_external(self, session_id, *, paid, metadata, amount=None):
        self.sessions[session_id] = GatewaySession(
            session_id=session_id, paid=paid, amount=amount, metadata=metadata
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.CITIZEN, *, blocked=False, premium=False, subject=None, name=None):
        counter["n"] += 1
        user = User(
            subject=subject or f"{role.value}-{counter['n']}",
            email=f"{role.value}{counter['n']}@example.org",
            name=name or f"{role.value.title()} {counter['n']}",
            role=role,
            is_blocked=blocked,
            is_premium=premium,
            issues_created=0,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def citizen(make_user):
    return make_user(Role.CITIZEN)


@pytest.fixture
def other_citizen(make_user):
    return make_user(Role.CITIZEN)


@pytest.fixture
def staff(make_user):
    return make_user(Role.STAFF)


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def verifier():
    return JwtIdentityVerifier()


@pytest.fixture
def client(session_factory, gateway, verifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_or_subject, **claims):
        subject = getattr(user_or_subject, "subject", user_or_subject)
        return {"Authorization": f"Bearer {create_access_token(subject, claims)}"}

    return _headers


@pytest.fixture
def issue_payload():
    def _payload(title="Pothole on Main Street", **overrides):
        data = {
            "title": title,
            "description": "Deep pothole near the bus stop",
            "category": "road",
            "location": "Main Street 12",
        }
        data.update(overrides)
        return data

    return _payload
