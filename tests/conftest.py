"""
Test configuration and fixtures
"""

import os
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

os.environ["APP_ENV"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ["SEAT_LOCK_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_busseats.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from busseats.core.database import Base, build_engine, build_session_factory, init_db
from busseats.core.metrics import MetricsCollector
from busseats.core.security import create_access_token
from busseats.schemas.reservation import ReservationInput
from busseats.services.availability_service import AvailabilityService
from busseats.services.lifecycle_service import BookingLifecycleManager
from busseats.services.reservation_writer import ReservationWriter
from busseats.store.memory import InMemoryReservationStore
from busseats.store.sql import SqlReservationStore


TRAVEL_DATE = date.today() + timedelta(days=7)


@pytest.fixture
def travel_date():
    return TRAVEL_DATE


@pytest.fixture
def make_input():
    """Build a reservation request with sensible defaults"""

    def _make(**overrides) -> ReservationInput:
        data = {
            "vehicle_id": "V1",
            "operator_id": "op-1",
            "service_date": TRAVEL_DATE,
            "seat_id": "A",
            "passenger_name": "Sita Sharma",
            "passenger_phone": "9812345678",
            "amount": Decimal("1200"),
            "boarding_point": "Kathmandu",
            "dropping_point": "Pokhara",
            "party_id": "passenger-1",
            "vehicle_name": "Sajha Deluxe",
            "vehicle_type": "Deluxe",
        }
        data.update(overrides)
        return ReservationInput(**data)

    return _make


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def store():
    """Memory store with an atomic insert-if-seat-free"""
    return InMemoryReservationStore(conditional_insert=True)


@pytest.fixture
def racy_store():
    """Memory store offering only plain inserts"""
    return InMemoryReservationStore(conditional_insert=False)


@pytest.fixture
def availability(store):
    return AvailabilityService(store)


@pytest.fixture
def writer(store, metrics):
    return ReservationWriter(store, metrics=metrics)


@pytest.fixture
def lifecycle(store, metrics):
    return BookingLifecycleManager(store, metrics=metrics)


@pytest.fixture
def db_url(tmp_path) -> str:
    """Temporary SQLite database per test"""
    return f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}"


@pytest_asyncio.fixture
async def sql_store(db_url):
    engine = build_engine(db_url)
    await init_db(bind=engine)
    try:
        yield SqlReservationStore(build_session_factory(engine))
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


def auth_headers(party_id: str, role: str = "passenger") -> dict:
    token = create_access_token({"sub": party_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def passenger_headers():
    return auth_headers("passenger-1", "passenger")


@pytest.fixture
def other_passenger_headers():
    return auth_headers("passenger-2", "passenger")


@pytest.fixture
def operator_headers():
    return auth_headers("op-1", "operator")


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", "admin")


@pytest_asyncio.fixture
async def client(store):
    """HTTP client against the app, backed by the memory store"""
    from busseats.main import app

    app.state.store = store
    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.state.store = None
