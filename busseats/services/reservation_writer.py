"""
Reservation writer: validate, re-check availability, commit
"""

import asyncio
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from busseats.config import settings
from busseats.core.exceptions import SeatConflictError, StoreUnavailableError, ValidationError
from busseats.core.logging import LoggerAdapter
from busseats.core.metrics import MetricsCollector, metrics_collector
from busseats.core.redis import seat_lock_resource
from busseats.schemas.reservation import Reservation, ReservationDraft, ReservationInput
from busseats.services.availability_service import AvailabilityService
from busseats.services.seat_layout import generate_layout, seat_ids
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)

# Optional country prefix, then exactly 10 digits
PHONE_PATTERN = re.compile(r"^(\+\d{1,3}[\s-]?)?\d{10}$")


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone.strip()) is not None


def parse_service_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("Enter a valid travel date (YYYY-MM-DD)", field="service_date")


def _required(value: Optional[str], field: str, message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message, field=field)
    return value


def validate_reservation_input(data: ReservationInput) -> ReservationDraft:
    """
    Shape checks only; raises ValidationError naming the first bad field
    """
    vehicle_id = _required(data.vehicle_id, "vehicle_id", "Select a bus")
    operator_id = _required(data.operator_id, "operator_id", "Reservation has no operator")
    service_date = parse_service_date(data.service_date)
    seat_id = _required(data.seat_id, "seat_id", "Select a seat")
    passenger_name = _required(data.passenger_name, "passenger_name", "Enter the passenger name")

    if not is_valid_phone(data.passenger_phone):
        raise ValidationError("Enter a valid phone number", field="passenger_phone")

    try:
        amount = Decimal(str(data.amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Amount must be a number", field="amount")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Amount must not be negative", field="amount")

    layout = generate_layout(data.vehicle_type)
    if layout and seat_id not in seat_ids(layout):
        raise ValidationError(f"Seat {seat_id} does not exist on this bus", field="seat_id")

    return ReservationDraft(
        vehicle_id=vehicle_id,
        operator_id=operator_id,
        service_date=service_date,
        seat_id=seat_id,
        passenger_name=passenger_name,
        passenger_phone=data.passenger_phone.strip(),
        amount=amount,
        boarding_point=(data.boarding_point or "").strip() or None,
        dropping_point=(data.dropping_point or "").strip() or None,
        party_id=data.party_id or None,
        vehicle_name=data.vehicle_name,
        vehicle_type=data.vehicle_type,
    )


class ReservationWriter:
    """
    Check-then-commit reservation creation.

    The availability re-check right before the write narrows the window left
    open since the picker's last read. Two writers can still both pass the
    check; the window is closed only when the store offers a conditional
    insert or when a seat lock manager is supplied.
    """

    def __init__(
        self,
        store: ReservationStore,
        availability: AvailabilityService = None,
        lock_manager=None,
        timeout: float = None,
        metrics: MetricsCollector = None,
    ):
        self.store = store
        self.availability = availability or AvailabilityService(store)
        self.lock_manager = lock_manager
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS
        self.metrics = metrics or metrics_collector

    async def create_reservation(self, data: ReservationInput) -> Reservation:
        draft = validate_reservation_input(data)
        log = LoggerAdapter(logger, {
            "vehicle_id": draft.vehicle_id,
            "seat_id": draft.seat_id,
            "party_id": draft.party_id,
        })
        log.info(f"Reserving seat {draft.seat_id} on {draft.vehicle_id} for {draft.service_date}")

        async with self.metrics.track_booking_attempt():
            try:
                reservation = await asyncio.wait_for(self._commit(draft), timeout=self.timeout)
            except asyncio.TimeoutError:
                # The write may or may not have landed
                log.error(f"Reservation write for seat {draft.seat_id} timed out")
                raise StoreUnavailableError(
                    "create_reservation",
                    "The booking request timed out. Check the seat before trying again",
                )
            except SeatConflictError:
                log.warning(f"Seat {draft.seat_id} on {draft.vehicle_id}/{draft.service_date} already taken")
                raise

        log.info(f"Reservation {reservation.id} booked seat {reservation.seat_id}")
        return reservation

    async def _commit(self, draft: ReservationDraft) -> Reservation:
        if self.lock_manager is None:
            return await self._check_then_insert(draft)

        resource = seat_lock_resource(draft.vehicle_id, draft.service_date.isoformat(), draft.seat_id)
        try:
            token = await self.lock_manager.acquire_lock(resource, ttl=settings.SEAT_LOCK_TTL_SECONDS)
        except Exception as e:
            logger.error(f"Seat lock unavailable for {resource}: {e}")
            raise StoreUnavailableError("seat_lock")
        if not token:
            # Another writer is committing this seat right now
            raise SeatConflictError(draft.seat_id)

        try:
            return await self._check_then_insert(draft)
        finally:
            await self.lock_manager.release_lock(resource, token)

    async def _check_then_insert(self, draft: ReservationDraft) -> Reservation:
        available = await self.availability.is_seat_available(
            draft.vehicle_id, draft.service_date, draft.seat_id
        )
        if not available:
            raise SeatConflictError(draft.seat_id)

        if self.store.supports_conditional_insert:
            return await self.store.insert_if_seat_free(draft)
        return await self.store.insert(draft)
