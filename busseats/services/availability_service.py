"""
Availability queries over booked reservations
"""

import logging
from datetime import date
from typing import FrozenSet, List, Optional

from busseats.schemas.reservation import Reservation
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Read-only view of which seats are held on a (vehicle, date).

    Results are a snapshot: they are stale as soon as they are returned and
    must be re-checked before any write.
    """

    def __init__(self, store: ReservationStore):
        self.store = store

    async def get_occupied_seats(self, vehicle_id: str, service_date: date) -> FrozenSet[str]:
        booked = await self.store.find_booked(vehicle_id, service_date)
        return frozenset(r.seat_id for r in booked)

    async def is_seat_available(self, vehicle_id: str, service_date: date, seat_id: str) -> bool:
        booked = await self.store.find_booked(vehicle_id, service_date, seat_id)
        return not booked

    async def get_seat_holder(
        self,
        vehicle_id: str,
        service_date: date,
        seat_id: str,
    ) -> Optional[Reservation]:
        """The booked reservation currently on a seat; the earliest one if duplicates exist"""
        booked = await self.store.find_booked(vehicle_id, service_date, seat_id)
        if not booked:
            return None
        if len(booked) > 1:
            logger.warning(
                f"{len(booked)} booked reservations hold seat {seat_id} on {vehicle_id}/{service_date}"
            )
        return min(booked, key=lambda r: (r.created_at, r.id))

    async def list_bookings_on_date(self, vehicle_id: str, service_date: date) -> List[Reservation]:
        """Passenger manifest for one bus on one travel date, by seat"""
        booked = await self.store.find_booked(vehicle_id, service_date)
        return sorted(booked, key=lambda r: r.seat_id)
