"""
Tests for the reservation writer: validation, conflicts and concurrent booking
"""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from busseats.core.exceptions import SeatConflictError, StoreUnavailableError, ValidationError
from busseats.core.redis import RedisManager, seat_lock_resource
from busseats.models.reservation import ReservationStatus
from busseats.services.availability_service import AvailabilityService
from busseats.services.reconciliation_service import ReservationReconciler
from busseats.services.reservation_writer import (
    ReservationWriter,
    is_valid_phone,
    validate_reservation_input,
)
from busseats.services.seat_layout import (
    LEFT,
    RIGHT,
    SeatCell,
    register_layout_family,
    unregister_layout_family,
)
from busseats.store.memory import InMemoryReservationStore


class FakeLockManager:
    """In-process stand-in for RedisManager's lock calls"""

    def __init__(self):
        self.held = {}
        self.released = []

    async def acquire_lock(self, resource, identifier=None, ttl=None):
        if resource in self.held:
            return None
        token = identifier or f"token-{len(self.held) + len(self.released)}"
        self.held[resource] = token
        return token

    async def release_lock(self, resource, identifier):
        self.released.append(resource)
        return self.held.pop(resource, None) == identifier


@pytest.fixture
def trio_class():
    register_layout_family("Trio", lambda capacity: [
        [SeatCell("A1", LEFT), None, SeatCell("A2", RIGHT)],
        [SeatCell("B1", LEFT)],
    ])
    yield "Trio"
    unregister_layout_family("Trio")


@pytest.mark.unit
class TestValidation:

    @pytest.mark.parametrize("phone", ["9812345678", "+9779812345678", "+977 9812345678", "+1-9812345678"])
    def test_valid_phones(self, phone):
        assert is_valid_phone(phone)

    @pytest.mark.parametrize("phone", [None, "", "12345", "98123456789", "+97798123", "phone-number"])
    def test_invalid_phones(self, phone):
        assert not is_valid_phone(phone)

    @pytest.mark.parametrize("overrides,field", [
        ({"passenger_name": "   "}, "passenger_name"),
        ({"passenger_name": None}, "passenger_name"),
        ({"passenger_phone": "12345"}, "passenger_phone"),
        ({"seat_id": ""}, "seat_id"),
        ({"seat_id": "Z9"}, "seat_id"),
        ({"service_date": "2025-13-01"}, "service_date"),
        ({"service_date": None}, "service_date"),
        ({"amount": -5}, "amount"),
        ({"amount": "lots"}, "amount"),
        ({"vehicle_id": " "}, "vehicle_id"),
    ])
    def test_rejects_bad_field(self, make_input, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_reservation_input(make_input(**overrides))

        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400

    def test_normalizes_fields(self, make_input):
        draft = validate_reservation_input(make_input(
            service_date="2025-06-01",
            passenger_name="  Ram Bahadur ",
            passenger_phone=" 9812345678 ",
            boarding_point="  ",
            amount="850.50",
        ))

        assert draft.service_date == date(2025, 6, 1)
        assert draft.passenger_name == "Ram Bahadur"
        assert draft.passenger_phone == "9812345678"
        assert draft.boarding_point is None
        assert draft.amount == Decimal("850.50")

    def test_non_latin_seat_labels(self, make_input):
        assert validate_reservation_input(make_input(seat_id="क")).seat_id == "क"

    def test_unknown_vehicle_class_skips_layout_check(self, make_input):
        draft = validate_reservation_input(make_input(vehicle_type="Double Decker", seat_id="Z9"))
        assert draft.seat_id == "Z9"


@pytest.mark.unit
@pytest.mark.asyncio
class TestCreateReservation:

    async def test_creates_booked_reservation(self, writer, make_input, travel_date):
        reservation = await writer.create_reservation(make_input(seat_id="A"))

        assert reservation.id
        assert reservation.status == ReservationStatus.BOOKED
        assert reservation.service_date == travel_date
        assert reservation.created_at is not None
        assert reservation.vehicle_name == "Sajha Deluxe"

    async def test_taken_seat_conflicts(self, writer, make_input):
        await writer.create_reservation(make_input(seat_id="A"))

        with pytest.raises(SeatConflictError) as exc_info:
            await writer.create_reservation(make_input(seat_id="A", party_id="passenger-2"))

        assert exc_info.value.seat_id == "A"
        assert exc_info.value.status_code == 409

    async def test_cancelled_seat_can_be_rebooked(self, store, writer, make_input):
        first = await writer.create_reservation(make_input(seat_id="A"))
        await store.update_status(first.id, ReservationStatus.CANCELLED)

        second = await writer.create_reservation(make_input(seat_id="A", party_id="passenger-2"))
        assert second.status == ReservationStatus.BOOKED

    async def test_end_to_end_scenario(self, store, availability, writer, make_input, trio_class):
        day = date(2025, 6, 1)
        await writer.create_reservation(make_input(vehicle_type=trio_class, service_date=day, seat_id="A1"))

        assert await availability.get_occupied_seats("V1", day) == {"A1"}

        with pytest.raises(SeatConflictError) as exc_info:
            await writer.create_reservation(make_input(vehicle_type=trio_class, service_date=day, seat_id="A1"))
        assert exc_info.value.seat_id == "A1"

        reservation = await writer.create_reservation(
            make_input(vehicle_type=trio_class, service_date=day, seat_id="A2")
        )
        assert reservation.status == ReservationStatus.BOOKED
        assert reservation.seat_id == "A2"

    async def test_validation_precedes_store_access(self, make_input):
        store = AsyncMock()
        writer = ReservationWriter(store)

        with pytest.raises(ValidationError):
            await writer.create_reservation(make_input(passenger_phone="nope"))

        store.find_booked.assert_not_called()

    async def test_metrics_classify_outcomes(self, writer, metrics, make_input):
        await writer.create_reservation(make_input(seat_id="A"))
        with pytest.raises(SeatConflictError):
            await writer.create_reservation(make_input(seat_id="A"))

        snapshot = await metrics.get_metrics()
        assert snapshot["total_attempts"] == 2
        assert snapshot["successful_bookings"] == 1
        assert snapshot["seat_conflicts"] == 1

    async def test_timeout_is_store_unavailable(self, make_input, metrics):
        slow_store = InMemoryReservationStore(conditional_insert=True, latency=0.2)
        writer = ReservationWriter(slow_store, timeout=0.05, metrics=metrics)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await writer.create_reservation(make_input(seat_id="A"))

        assert exc_info.value.status_code == 503
        assert (await metrics.get_metrics())["store_failures"] == 1


@pytest.mark.concurrency
@pytest.mark.asyncio
class TestConcurrentBooking:

    async def test_conditional_insert_allows_one_winner(self, store, writer, make_input, travel_date):
        results = await asyncio.gather(
            *[writer.create_reservation(make_input(seat_id="A", party_id=f"p-{i}")) for i in range(10)],
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, SeatConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == 9
        assert len(await store.find_booked("V1", travel_date, "A")) == 1

    async def test_plain_check_then_act_can_double_book(self, make_input, metrics, travel_date):
        # Without a conditional write both writers can pass the re-check
        racy_store = InMemoryReservationStore(conditional_insert=False, latency=0.01)
        writer = ReservationWriter(racy_store, metrics=metrics)

        await asyncio.gather(
            *[writer.create_reservation(make_input(seat_id="A", party_id=f"p-{i}")) for i in range(3)],
            return_exceptions=True,
        )
        assert len(await racy_store.find_booked("V1", travel_date, "A")) > 1

        reconciler = ReservationReconciler(racy_store, metrics=metrics)
        cancelled = await reconciler.resolve()

        booked = await racy_store.find_booked("V1", travel_date, "A")
        assert len(booked) == 1
        assert len(cancelled) >= 1
        assert await reconciler.find_duplicates() == {}

    async def test_seat_lock_serializes_writers(self, make_input, metrics, travel_date):
        racy_store = InMemoryReservationStore(conditional_insert=False, latency=0.01)
        locks = FakeLockManager()
        writer = ReservationWriter(racy_store, lock_manager=locks, metrics=metrics)

        results = await asyncio.gather(
            *[writer.create_reservation(make_input(seat_id="A", party_id=f"p-{i}")) for i in range(5)],
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(isinstance(r, SeatConflictError) for r in results if isinstance(r, Exception))
        assert len(await racy_store.find_booked("V1", travel_date, "A")) == 1
        assert locks.held == {}

    async def test_different_seats_do_not_conflict(self, store, writer, make_input, travel_date):
        seats = ["A", "B", "C", "D", "1", "2"]
        await asyncio.gather(*[writer.create_reservation(make_input(seat_id=s)) for s in seats])

        occupied = await AvailabilityService(store).get_occupied_seats("V1", travel_date)
        assert occupied == set(seats)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSeatLockGuard:

    async def test_lock_failure_is_store_unavailable(self, store, make_input):
        locks = AsyncMock()
        locks.acquire_lock.side_effect = ConnectionError("redis down")
        writer = ReservationWriter(store, lock_manager=locks)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await writer.create_reservation(make_input(seat_id="A"))

        assert exc_info.value.operation == "seat_lock"
        assert await store.find_booked("V1", make_input().service_date) == []

    async def test_lock_released_after_conflict(self, store, make_input):
        locks = FakeLockManager()
        writer = ReservationWriter(store, lock_manager=locks)
        await writer.create_reservation(make_input(seat_id="A"))

        with pytest.raises(SeatConflictError):
            await writer.create_reservation(make_input(seat_id="A"))

        assert locks.held == {}
        assert len(locks.released) == 2

    async def test_redis_manager_lock_round_trip(self, travel_date):
        client = AsyncMock()
        client.eval.side_effect = ["owner-token", 1]
        manager = RedisManager(client=client)
        resource = seat_lock_resource("V1", travel_date.isoformat(), "A")

        token = await manager.acquire_lock(resource, identifier="owner-token", ttl=5)
        released = await manager.release_lock(resource, token)

        assert token == "owner-token"
        assert released is True
        assert client.eval.call_args_list[0].args[2] == f"lock:seat:V1:{travel_date.isoformat()}:A"

    async def test_redis_manager_lock_contended(self):
        client = AsyncMock()
        client.eval.return_value = None
        manager = RedisManager(client=client)

        assert await manager.acquire_lock("seat:V1:2025-06-01:A") is None
