"""
Reservation lifecycle: cancel, complete, listings
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

from busseats.config import settings
from busseats.core.exceptions import (
    CancellationNotAllowedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from busseats.core.metrics import MetricsCollector, metrics_collector
from busseats.models.reservation import ReservationStatus
from busseats.schemas.reservation import Reservation
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)

# booked is the only initial state; cancelled and completed are terminal
ALLOWED_TRANSITIONS = {
    ReservationStatus.BOOKED: {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED},
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.COMPLETED: set(),
}


def check_transition(from_status, to_status) -> None:
    from_status = ReservationStatus(from_status)
    to_status = ReservationStatus(to_status)
    if to_status not in ALLOWED_TRANSITIONS[from_status]:
        raise InvalidTransitionError(from_status.value, to_status.value)


def business_now() -> datetime:
    return datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE))


def is_cancellable(reservation: Reservation, now: Union[datetime, date]) -> bool:
    """
    Booked and travelling today or later; time of day is ignored
    """
    if reservation.status != ReservationStatus.BOOKED:
        return False
    today = now.date() if isinstance(now, datetime) else now
    return reservation.service_date >= today


def parse_status_filter(value: Optional[str]) -> Optional[ReservationStatus]:
    if value is None or value == "":
        return None
    try:
        return ReservationStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown status '{value}'; use booked, cancelled or completed",
            field="status",
        )


class BookingLifecycleManager:
    """
    Status transitions for reservations and per-party / per-operator listings.

    Ownership checks are the caller's job.
    """

    def __init__(self, store: ReservationStore, metrics: MetricsCollector = None):
        self.store = store
        self.metrics = metrics or metrics_collector

    async def get(self, reservation_id: str) -> Reservation:
        reservation = await self.store.get(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    async def cancel(self, reservation_id: str, now: Union[datetime, date, None] = None) -> Reservation:
        """
        booked -> cancelled. Cancelling twice is a no-op. When ``now`` is
        given the travel date must not have elapsed.
        """
        reservation = await self.get(reservation_id)
        if reservation.status == ReservationStatus.CANCELLED:
            return reservation
        if now is not None and reservation.status == ReservationStatus.BOOKED \
                and not is_cancellable(reservation, now):
            raise CancellationNotAllowedError(reservation_id)
        return await self._transition(reservation, ReservationStatus.CANCELLED)

    async def complete(self, reservation_id: str) -> Reservation:
        """booked -> completed, for travel that has happened"""
        reservation = await self.get(reservation_id)
        return await self._transition(reservation, ReservationStatus.COMPLETED)

    async def _transition(self, reservation: Reservation, to_status: ReservationStatus) -> Reservation:
        check_transition(reservation.status, to_status)

        updated = await self.store.update_status(
            reservation.id, to_status, expected_status=reservation.status
        )
        if updated is None:
            # Someone else moved it first
            current = await self.get(reservation.id)
            if current.status == to_status == ReservationStatus.CANCELLED:
                return current
            raise InvalidTransitionError(ReservationStatus(current.status).value, to_status.value)

        logger.info(f"Reservation {reservation.id}: {ReservationStatus(reservation.status).value} -> {to_status.value}")
        await self.metrics.record_status_change(to_status.value)
        return updated

    async def list_by_party(self, party_id: str, status_filter: Optional[str] = None) -> List[Reservation]:
        return await self.store.list_by_party(party_id, parse_status_filter(status_filter))

    async def list_by_operator(self, operator_id: str, status_filter: Optional[str] = None) -> List[Reservation]:
        return await self.store.list_by_operator(operator_id, parse_status_filter(status_filter))

    async def complete_elapsed(self, today: date) -> List[Reservation]:
        """
        Mark booked reservations whose travel date is before ``today`` as
        completed. Only runs when called; nothing completes reservations
        implicitly.
        """
        completed = []
        for reservation in await self.store.list_by_status(ReservationStatus.BOOKED, service_date_before=today):
            updated = await self.store.update_status(
                reservation.id, ReservationStatus.COMPLETED, expected_status=ReservationStatus.BOOKED
            )
            if updated is not None:
                completed.append(updated)
                await self.metrics.record_status_change(ReservationStatus.COMPLETED.value)
        if completed:
            logger.info(f"Completed {len(completed)} reservations travelling before {today}")
        return completed

    async def delete(self, reservation_id: str) -> None:
        """Administrative removal; no invariant bookkeeping"""
        if not await self.store.delete(reservation_id):
            raise NotFoundError("Reservation", reservation_id)
        logger.warning(f"Reservation {reservation_id} deleted")
