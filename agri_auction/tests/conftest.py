import os
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# FORCE model registration
import agri_auction.models  # noqa

from agri_auction.core.config import Settings, get_settings
from agri_auction.core.deps import get_clock
from agri_auction.db.base import Base
from agri_auction.db.session import build_engine, get_db
from agri_auction.models.enums import BuyerType, ParticipantRole
from agri_auction.services.lot_registry import LotRegistryService
from agri_auction.services.participant_directory import ParticipantDirectory

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock the tests move by hand. Shared safely across threads."""

    def __init__(self, start: datetime = T0):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(**kwargs)
            return self._now

    def set(self, when: datetime) -> None:
        with self._lock:
            self._now = when


@pytest.fixture(scope="function")
def engine(tmp_path):
    # file-backed so threads get independent connections that still see one database
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'auction.db'}"
    eng = build_engine(url)
    Base.metadata.drop_all(bind=eng)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings():
    return Settings(
        scheduler_enabled=False,
        sweep_batch_size=100,
        finalize_lease_seconds=60,
        retry_backoff_base_seconds=5,
        retry_backoff_max_seconds=300,
        bid_rate_limit_capacity=1000,
        bid_rate_limit_per_minute=1000,
    )


@pytest.fixture
def directory(clock):
    return ParticipantDirectory(clock=clock)


@pytest.fixture
def participants(db, directory):
    """Farmer F1 and commercial buyers A, B, C; P is a public buyer."""
    directory.upsert(
        db,
        participant_id="F1",
        role=ParticipantRole.FARMER,
        display_name="Ramesh Patil",
        email="ramesh@example.in",
        phone="9800000001",
        state="Maharashtra",
        district="Pune",
        city="Baramati",
        pin_code="413102",
    )
    for pid, name, phone in (
        ("A", "Anand Traders", "9800000002"),
        ("B", "Bharat Foods", "9800000003"),
        ("C", "Chetan Agro", "9800000004"),
    ):
        directory.upsert(
            db,
            participant_id=pid,
            role=ParticipantRole.BUYER,
            display_name=name,
            email=f"{pid.lower()}@example.in",
            phone=phone,
            state="Maharashtra",
        )
    directory.upsert(
        db,
        participant_id="P",
        role=ParticipantRole.BUYER,
        display_name="District Procurement Office",
        buyer_type=BuyerType.PUBLIC,
    )
    return directory


def lot_payload(clock, **overrides):
    now = clock()
    payload = {
        "seller_id": "F1",
        "commodity_name": "Onion",
        "quantity": Decimal("1200"),
        "unit": "kg",
        "quality": "Grade A",
        "harvest_date": now - timedelta(days=2),
        "expiry_date": now + timedelta(days=10),
        "closing_time": now + timedelta(hours=1),
        "starting_price": Decimal("5000"),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_lot(db, clock, participants):
    registry = LotRegistryService(clock=clock, directory=participants)

    def _make(**overrides):
        return registry.create_lot(db, lot_payload(clock, **overrides))

    return _make


@pytest.fixture
def client(session_factory, clock, settings):
    from agri_auction.main import create_app

    app = create_app(settings)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as c:
        yield c
