"""
Dictionary-backed reservation store for tests and local development
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from busseats.core.exceptions import SeatConflictError
from busseats.models.reservation import ReservationStatus
from busseats.schemas.reservation import Reservation, ReservationDraft
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)


class InMemoryReservationStore(ReservationStore):
    """
    Every call suspends once on entry, the way a network round trip would,
    so interleavings between concurrent coroutines are realistic.

    ``conditional_insert`` turns on the atomic insert-if-seat-free primitive.
    """

    def __init__(self, conditional_insert: bool = False, latency: float = 0.0):
        self.supports_conditional_insert = conditional_insert
        self.latency = latency
        self._documents: Dict[str, Reservation] = {}
        self._last_created_at: Optional[datetime] = None

    async def _round_trip(self):
        await asyncio.sleep(self.latency)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _newest_first(self, reservations: List[Reservation]) -> List[Reservation]:
        return sorted(reservations, key=lambda r: (r.created_at, r.id), reverse=True)

    def _held(self, vehicle_id: str, service_date: date, seat_id: Optional[str]) -> List[Reservation]:
        return [
            r for r in self._documents.values()
            if r.vehicle_id == vehicle_id
            and r.service_date == service_date
            and r.status == ReservationStatus.BOOKED
            and (seat_id is None or r.seat_id == seat_id)
        ]

    async def find_booked(self, vehicle_id, service_date, seat_id=None):
        await self._round_trip()
        return self._held(vehicle_id, service_date, seat_id)

    async def list_by_party(self, party_id, status=None):
        await self._round_trip()
        matches = [
            r for r in self._documents.values()
            if r.party_id == party_id and (status is None or r.status == status)
        ]
        return self._newest_first(matches)

    async def list_by_operator(self, operator_id, status=None):
        await self._round_trip()
        matches = [
            r for r in self._documents.values()
            if r.operator_id == operator_id and (status is None or r.status == status)
        ]
        return self._newest_first(matches)

    async def list_by_status(self, status, service_date_before=None):
        await self._round_trip()
        matches = [
            r for r in self._documents.values()
            if r.status == status
            and (service_date_before is None or r.service_date < service_date_before)
        ]
        return sorted(matches, key=lambda r: (r.created_at, r.id))

    async def get(self, reservation_id):
        await self._round_trip()
        return self._documents.get(reservation_id)

    def _write(self, draft: ReservationDraft) -> Reservation:
        # Strictly increasing timestamps even when the clock does not advance
        now = self._now()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        reservation = Reservation(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            status=ReservationStatus.BOOKED,
            **draft.model_dump(),
        )
        self._documents[reservation.id] = reservation
        return reservation

    async def insert(self, draft):
        await self._round_trip()
        return self._write(draft)

    async def insert_if_seat_free(self, draft):
        if not self.supports_conditional_insert:
            return await super().insert_if_seat_free(draft)
        await self._round_trip()
        # No await between the check and the write
        if self._held(draft.vehicle_id, draft.service_date, draft.seat_id):
            raise SeatConflictError(draft.seat_id)
        return self._write(draft)

    async def update_status(self, reservation_id, status, expected_status=None):
        await self._round_trip()
        current = self._documents.get(reservation_id)
        if current is None:
            return None
        if expected_status is not None and current.status != expected_status:
            return None
        updated = current.model_copy(update={"status": status, "updated_at": self._now()})
        self._documents[reservation_id] = updated
        return updated

    async def delete(self, reservation_id):
        await self._round_trip()
        return self._documents.pop(reservation_id, None) is not None
