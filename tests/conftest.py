"""Shared fixtures: in-memory database, user factories and an API harness."""

import itertools

import pytest
from fastapi import Depends, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lawsphere import cache as cache_module
from lawsphere import rate_limiter
from lawsphere.auth import get_current_user, get_optional_user
from lawsphere.database import Base, get_db
from lawsphere.main import app
from lawsphere.models import Lawyer, User
from lawsphere.realtime import Notifier


class RecordingNotifier(Notifier):
    """Keeps every published event for assertions"""

    def __init__(self):
        self.events = []

    async def _publish(self, event, data, room):
        self.events.append((event, data, room))

    def names(self):
        return [event for event, _, _ in self.events]


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Run the cache and rate limiter without Redis and with fresh counters"""
    monkeypatch.setattr(rate_limiter, "REDIS_URL", None)
    monkeypatch.setattr(rate_limiter, "redis_client", None)
    monkeypatch.setattr(rate_limiter, "redis_failed_at", 0.0)
    monkeypatch.setattr(cache_module.cache, "redis_client", None)
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


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
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(name=None, role="client", profile_image=None):
        n = next(counter)
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            firebase_uid=f"uid-{n}",
            role=role,
            profile_image=profile_image,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_lawyer(db, make_user):
    def _make(name="Jane Counsel", fee=150.0):
        user = make_user(name=name, role="lawyer")
        lawyer = Lawyer(user_id=user.id, specialization="Family Law", consultation_fee=fee)
        db.add(lawyer)
        db.commit()
        db.refresh(lawyer)
        return lawyer

    return _make


class ApiHarness:
    def __init__(self, client, notifier):
        self.client = client
        self.notifier = notifier
        self.user_id = None

    def act_as(self, user):
        self.user_id = user.id if user is not None else None


@pytest.fixture
def api(session_factory):
    notifier = RecordingNotifier()
    harness = ApiHarness(TestClient(app), notifier)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_current_user(session: Session = Depends(get_db)):
        if harness.user_id is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return session.get(User, harness.user_id)

    def override_optional_user(session: Session = Depends(get_db)):
        if harness.user_id is None:
            return None
        return session.get(User, harness.user_id)

    previous_notifier = app.state.notifier
    app.state.notifier = notifier
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_optional_user] = override_optional_user

    yield harness

    app.dependency_overrides.clear()
    app.state.notifier = previous_notifier
