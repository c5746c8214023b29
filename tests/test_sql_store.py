"""
Integration tests for the SQLAlchemy reservation store on SQLite
"""

import asyncio
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from busseats.core.exceptions import SeatConflictError, StoreUnavailableError
from busseats.models.reservation import ReservationStatus
from busseats.services.lifecycle_service import BookingLifecycleManager
from busseats.services.reconciliation_service import ReservationReconciler
from busseats.services.reservation_writer import ReservationWriter, validate_reservation_input
from busseats.store.sql import SqlReservationStore, is_booked_seat_violation, translate_errors


@pytest.mark.integration
@pytest.mark.asyncio
class TestSqlReservationStore:

    async def test_insert_and_get(self, sql_store, make_input, travel_date):
        draft = validate_reservation_input(make_input(seat_id="क"))

        reservation = await sql_store.insert(draft)
        fetched = await sql_store.get(reservation.id)

        assert fetched.id == reservation.id
        assert fetched.seat_id == "क"
        assert fetched.status == ReservationStatus.BOOKED
        assert fetched.service_date == travel_date
        assert fetched.amount == draft.amount

    async def test_unique_index_rejects_second_booking(self, sql_store, make_input, travel_date):
        draft = validate_reservation_input(make_input(seat_id="A"))
        await sql_store.insert(draft)

        with pytest.raises(SeatConflictError) as exc_info:
            await sql_store.insert(draft)

        assert exc_info.value.seat_id == "A"
        assert len(await sql_store.find_booked("V1", travel_date, "A")) == 1

    async def test_cancelled_seat_can_be_rebooked(self, sql_store, make_input, travel_date):
        draft = validate_reservation_input(make_input(seat_id="A"))
        first = await sql_store.insert(draft)
        await sql_store.update_status(first.id, ReservationStatus.CANCELLED)

        second = await sql_store.insert(draft)

        assert second.id != first.id
        booked = await sql_store.find_booked("V1", travel_date)
        assert [r.id for r in booked] == [second.id]

    async def test_conditional_status_update(self, sql_store, make_input):
        reservation = await sql_store.insert(validate_reservation_input(make_input()))

        assert await sql_store.update_status(
            reservation.id, ReservationStatus.COMPLETED, expected_status=ReservationStatus.CANCELLED
        ) is None

        updated = await sql_store.update_status(
            reservation.id, ReservationStatus.COMPLETED, expected_status=ReservationStatus.BOOKED
        )
        assert updated.status == ReservationStatus.COMPLETED
        assert await sql_store.update_status("missing", ReservationStatus.CANCELLED) is None

    async def test_listing_order_and_filters(self, sql_store, make_input):
        first = await sql_store.insert(validate_reservation_input(make_input(seat_id="A")))
        second = await sql_store.insert(validate_reservation_input(make_input(seat_id="B")))
        await sql_store.update_status(first.id, ReservationStatus.CANCELLED)

        by_party = await sql_store.list_by_party("passenger-1")
        assert [r.id for r in by_party] == [second.id, first.id]

        cancelled = await sql_store.list_by_party("passenger-1", ReservationStatus.CANCELLED)
        assert [r.id for r in cancelled] == [first.id]

        by_operator = await sql_store.list_by_operator("op-1", ReservationStatus.BOOKED)
        assert [r.id for r in by_operator] == [second.id]

        booked_before = await sql_store.list_by_status(ReservationStatus.BOOKED, service_date_before=date(2000, 1, 1))
        assert booked_before == []

    async def test_delete_and_ping(self, sql_store, make_input):
        reservation = await sql_store.insert(validate_reservation_input(make_input()))

        assert await sql_store.ping() is True
        assert await sql_store.delete(reservation.id) is True
        assert await sql_store.delete(reservation.id) is False

    async def test_other_constraint_failures_are_not_seat_conflicts(self, sql_store, make_input):
        draft = validate_reservation_input(make_input()).model_copy(update={"passenger_name": None})

        with pytest.raises(IntegrityError) as exc_info:
            await sql_store.insert(draft)

        assert not isinstance(exc_info.value, SeatConflictError)
        assert "passenger_name" in str(exc_info.value.orig)
        assert await sql_store.get(reservation.id) is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestSqlBackedServices:

    async def test_concurrent_writers_one_winner(self, sql_store, make_input, travel_date):
        writer = ReservationWriter(sql_store)

        results = await asyncio.gather(
            *[writer.create_reservation(make_input(seat_id="A", party_id=f"p-{i}")) for i in range(5)],
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(isinstance(r, SeatConflictError) for r in results if isinstance(r, Exception))
        assert len(await sql_store.find_booked("V1", travel_date, "A")) == 1

    async def test_lifecycle_round_trip(self, sql_store, make_input):
        writer = ReservationWriter(sql_store)
        lifecycle = BookingLifecycleManager(sql_store)
        reservation = await writer.create_reservation(make_input())

        await lifecycle.cancel(reservation.id)
        again = await lifecycle.cancel(reservation.id)

        assert again.status == ReservationStatus.CANCELLED
        assert await ReservationReconciler(sql_store).find_duplicates() == {}


@pytest.mark.unit
@pytest.mark.asyncio
class TestErrorTranslation:

    async def test_operational_error_becomes_store_unavailable(self):
        with pytest.raises(StoreUnavailableError) as exc_info:
            async with translate_errors("find_booked"):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        assert exc_info.value.operation == "find_booked"

    async def test_unavailable_session_factory(self, make_input):
        factory = MagicMock(side_effect=ConnectionError("refused"))
        store = SqlReservationStore(factory)

        with pytest.raises(StoreUnavailableError):
            await store.find_booked("V1", make_input().service_date)

    async def test_booked_seat_violation_detection(self):
        postgres = IntegrityError(
            "INSERT", {},
            Exception('duplicate key value violates unique constraint "uq_reservations_booked_seat"'),
        )
        sqlite = IntegrityError(
            "INSERT", {},
            Exception("UNIQUE constraint failed: reservations.vehicle_id, "
                      "reservations.service_date, reservations.seat_id"),
        )
        not_null = IntegrityError(
            "INSERT", {}, Exception("NOT NULL constraint failed: reservations.passenger_name")
        )

        assert is_booked_seat_violation(postgres)
        assert is_booked_seat_violation(sqlite)
        assert not is_booked_seat_violation(not_null)
