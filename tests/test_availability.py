"""
Tests for availability queries
"""

from datetime import timedelta

import pytest

from busseats.models.reservation import ReservationStatus
from busseats.services.reservation_writer import validate_reservation_input


@pytest.mark.unit
@pytest.mark.asyncio
class TestAvailabilityService:

    async def test_empty_bus_has_no_occupied_seats(self, availability, travel_date):
        assert await availability.get_occupied_seats("V1", travel_date) == frozenset()
        assert await availability.is_seat_available("V1", travel_date, "A") is True

    async def test_booked_seats_are_occupied(self, availability, writer, make_input, travel_date):
        await writer.create_reservation(make_input(seat_id="A"))
        await writer.create_reservation(make_input(seat_id="1"))

        assert await availability.get_occupied_seats("V1", travel_date) == {"A", "1"}
        assert await availability.is_seat_available("V1", travel_date, "A") is False
        assert await availability.is_seat_available("V1", travel_date, "B") is True

    async def test_scoped_to_vehicle_and_date(self, availability, writer, make_input, travel_date):
        await writer.create_reservation(make_input(seat_id="A"))

        assert await availability.get_occupied_seats("V2", travel_date) == frozenset()
        assert await availability.get_occupied_seats("V1", travel_date + timedelta(days=1)) == frozenset()

    async def test_cancelled_and_completed_free_the_seat(
        self, store, availability, writer, make_input, travel_date
    ):
        first = await writer.create_reservation(make_input(seat_id="A"))
        second = await writer.create_reservation(make_input(seat_id="B"))
        await store.update_status(first.id, ReservationStatus.CANCELLED)
        await store.update_status(second.id, ReservationStatus.COMPLETED)

        assert await availability.get_occupied_seats("V1", travel_date) == frozenset()

    async def test_seat_holder(self, availability, writer, make_input, travel_date):
        assert await availability.get_seat_holder("V1", travel_date, "A") is None

        reservation = await writer.create_reservation(make_input(seat_id="A"))

        holder = await availability.get_seat_holder("V1", travel_date, "A")
        assert holder.id == reservation.id

    async def test_seat_holder_prefers_earliest_duplicate(self, racy_store, make_input, travel_date):
        from busseats.services.availability_service import AvailabilityService

        draft = validate_reservation_input(make_input(seat_id="A"))
        first = await racy_store.insert(draft)
        await racy_store.insert(draft)

        holder = await AvailabilityService(racy_store).get_seat_holder("V1", travel_date, "A")
        assert holder.id == first.id

    async def test_bookings_on_date_sorted_by_seat(self, availability, writer, make_input, travel_date):
        for seat in ["C", "A", "B"]:
            await writer.create_reservation(make_input(seat_id=seat))

        manifest = await availability.list_bookings_on_date("V1", travel_date)
        assert [r.seat_id for r in manifest] == ["A", "B", "C"]
