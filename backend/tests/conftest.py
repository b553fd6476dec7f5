"""Shared fixtures: in-memory SQLite database, event recorder, entity factories."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)

from decimal import Decimal

import pytest

from app.core.database import Base, SessionLocal, engine
from app.core.events import EventBus, event_bus
from app.models import (
    ActionType, CommissionRule, CommissionType, Tenant, User, UserRole,
)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _isolated_event_bus():
    event_bus.clear()
    yield
    event_bus.clear()


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def kinds(self):
        return [e.kind for e in self.events]


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def bus(recorder):
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


_counter = {"n": 0}


def _next() -> int:
    _counter["n"] += 1
    return _counter["n"]


@pytest.fixture
def make_user(db):
    def _make_user(role: str = UserRole.OWNER.value, **kwargs) -> User:
        n = _next()
        fields = {
            "email": f"user{n}@example.rw",
            "hashed_password": "not-a-real-hash",
            "first_name": f"First{n}",
            "last_name": f"Last{n}",
            "role": role,
            "is_active": True,
        }
        fields.update(kwargs)
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def agent(make_user):
    return make_user(UserRole.AGENT.value, first_name="Jean", last_name="Mugisha")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN.value, first_name="Ada", last_name="Admin")


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.OWNER.value)


@pytest.fixture
def make_tenant(db, owner):
    def _make_tenant(**kwargs) -> Tenant:
        n = _next()
        fields = {"owner_id": owner.id, "first_name": f"Tenant{n}", "last_name": "Example"}
        fields.update(kwargs)
        tenant = Tenant(**fields)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make_tenant


@pytest.fixture
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture
def make_rule(db):
    def _make_rule(
        action_type: ActionType = ActionType.PROPERTY_REGISTRATION,
        commission_type: CommissionType = CommissionType.FIXED,
        commission_value="5000",
        **kwargs,
    ) -> CommissionRule:
        fields = {
            "action_type": action_type,
            "name": f"{action_type.value} rule",
            "commission_type": commission_type,
            "commission_value": Decimal(str(commission_value)),
            "is_active": True,
        }
        fields.update(kwargs)
        rule = CommissionRule(**fields)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make_rule
