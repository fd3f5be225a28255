# conftest.py
import os

# settings are read at import time
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ["TZ"] = "UTC"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from lounge.config import EnginePolicy
from lounge.db import Base, SessionLocal, engine
from lounge.schemas.common import Actor
from lounge.services import inventory, pricing
from lounge.services.uow import ServiceContext
from lounge.models.core import DeviceConfig
from lounge.util.security import create_token

T0 = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, at: datetime = T0):
        self.at = at

    def __call__(self) -> datetime:
        return self.at

    def advance(self, minutes: float = 0, seconds: float = 0):
        self.at = self.at + timedelta(minutes=minutes, seconds=seconds)
        return self.at


class ListNotifier:
    def __init__(self):
        self.events = []

    def send(self, event: dict) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e["type"] for e in self.events]


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture
def policy():
    return EnginePolicy(tz="UTC", require_full_payment=False, multi_person_categories=["PS5"])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return ListNotifier()


@pytest.fixture
def ctx(db, policy, clock, notifier):
    return ServiceContext(db=db, policy=policy, actor=Actor(user_id="u-1", username="asha", role="staff"),
                          notifier=notifier, clock=clock)


@pytest.fixture
def seeded(db, policy):
    """PS5 with four seats, regular and happy-hour tables, happy hour 14:00-16:00."""
    db.add(DeviceConfig(category="PS5", seats=["PS5-1", "PS5-2", "PS5-3", "PS5-4"]))
    db.add(DeviceConfig(category="PC", seats=["PC-1", "PC-2"]))
    for duration, price in (("30 mins", 120), ("1 hour", 200), ("2 hours", 380)):
        pricing.add_rule(db, policy, kind="regular", category="PS5", duration=duration, person_count=1, price=price)
    pricing.add_rule(db, policy, kind="regular", category="PS5", duration="1 hour", person_count=2, price=300)
    pricing.add_rule(db, policy, kind="happy_hour", category="PS5", duration="1 hour", person_count=1, price=150)
    pricing.add_rule(db, policy, kind="regular", category="PC", duration="1 hour", person_count=1, price=80)
    pricing.add_window(db, category="PS5", start_time="14:00", end_time="16:00")
    db.commit()
    return db


@pytest.fixture
def coke(db):
    item = inventory.create_item(db, name="Coke", price=40, cost_price=11, min_stock_level=2)
    inventory.add_batch(db, item.id, 3, 10, purchase_date=T0 - timedelta(days=9))
    inventory.add_batch(db, item.id, 4, 12, purchase_date=T0 - timedelta(days=8))
    db.commit()
    return item


@pytest.fixture
def client():
    from lounge.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    tok = create_token("u-1", username="asha", role="manager")
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture(scope="session")
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
