import os

# Keep the app's import-time create_all away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from v4ult.api.server import app
from v4ult.api.dependencies import (
    get_db,
    get_identity_provider,
    get_notifier,
    get_rate_limiter,
    get_toxicity_classifier,
)
from v4ult.api.security import StaticTokenChecker, get_admin_checker
from v4ult.database import Base
from v4ult.models.confession import Confession
from v4ult.services.rate_limit_service import CooldownRateLimiter
from v4ult.services.toxicity_service import ToxicityClassifier
from v4ult.tests.fakes import FakeClock, FakeIdentityProvider, FakeToxicityProvider, RecordingNotifier

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def toxicity_provider():
    return FakeToxicityProvider()


@pytest.fixture
def classifier(toxicity_provider):
    return ToxicityClassifier(toxicity_provider, threshold=0.70)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return CooldownRateLimiter(cooldown_seconds=5.0, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, identity, classifier, rate_limiter, notifier):
    """FastAPI test client wired to the in-memory database and fakes."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_toxicity_classifier] = lambda: classifier
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_admin_checker] = lambda: StaticTokenChecker(ADMIN_TOKEN)

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-V4ULT-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def valid_payload():
    """The submission used throughout the API tests."""
    return {
        "authorRef": "user-123",
        "claimedSenderName": "John Smith",
        "claimedTargetName": "Sarah Johnson",
        "body": "nice message",
        "category": "coffee_date",
        "displayAlias": "Midnight Fox",
        "department": "Physics",
    }


@pytest.fixture
def make_confession(db_session):
    """Insert a confession directly, bypassing the submission pipeline."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = dict(
            short_code=f"STC-T{counter['n']:03d}",
            author_ref="user-1",
            claimed_sender_name="John Smith",
            claimed_target_name="Sarah Johnson",
            sender_profile_ref="@johnsmith",
            body="nice message",
            category="coffee_date",
            display_alias="Midnight Fox",
            validation_score=100,
            toxicity_score=0.05,
            toxicity_flagged=False,
            status="pending",
            payment_state="unpaid",
            view_count=0,
        )
        fields.update(overrides)
        confession = Confession(**fields)
        db_session.add(confession)
        db_session.commit()
        db_session.refresh(confession)
        return confession

    return _make
