"""
Seat picker flow: selecting-seat -> entering-details -> confirming.

States are immutable values and every transition is a plain function
returning ``(next_state, effect)``. Effects name the network work the
transition wants done (check a seat, refresh the snapshot, submit); the
``SeatPickerController`` performs them and feeds the results back in as
further transitions.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import ClassVar, FrozenSet, Optional, Tuple, Union
import logging

from busseats.core.exceptions import SeatConflictError, StoreUnavailableError, ValidationError
from busseats.schemas.reservation import Reservation, ReservationInput
from busseats.services.availability_service import AvailabilityService
from busseats.services.reservation_writer import ReservationWriter, is_valid_phone
from busseats.services.seat_layout import generate_layout, seat_ids

logger = logging.getLogger(__name__)

BOOKING_UNAVAILABLE = "Online booking is not available for this bus"
SELECT_SEAT_FIRST = "Select a seat to continue"
RETRY_LATER = "Something went wrong while booking. Please try again"

DETAIL_FIELDS = ("passenger_name", "passenger_phone")


class PickerActionError(Exception):
    """An action that the current picker state does not accept"""

    def __init__(self, state, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} while {state.name}")


@dataclass(frozen=True)
class PassengerDetails:
    name: str
    phone: str
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None


@dataclass(frozen=True)
class SelectingSeat:
    name: ClassVar[str] = "selecting-seat"
    occupied: FrozenSet[str] = frozenset()
    selected: Optional[str] = None
    checking: bool = False
    message: Optional[str] = None


@dataclass(frozen=True)
class EnteringDetails:
    name: ClassVar[str] = "entering-details"
    seat_id: str = ""
    occupied: FrozenSet[str] = frozenset()
    details: Optional[PassengerDetails] = None
    errors: Tuple[Tuple[str, str], ...] = ()

    def error_for(self, field_name: str) -> Optional[str]:
        return dict(self.errors).get(field_name)


@dataclass(frozen=True)
class Confirming:
    name: ClassVar[str] = "confirming"
    seat_id: str = ""
    occupied: FrozenSet[str] = frozenset()
    details: PassengerDetails = field(default_factory=lambda: PassengerDetails("", ""))
    submitting: bool = False
    message: Optional[str] = None


@dataclass(frozen=True)
class Closed:
    name: ClassVar[str] = "closed"


PickerState = Union[SelectingSeat, EnteringDetails, Confirming, Closed]


@dataclass(frozen=True)
class CheckSeat:
    seat_id: str


@dataclass(frozen=True)
class RefreshSnapshot:
    pass


@dataclass(frozen=True)
class SubmitReservation:
    seat_id: str
    details: PassengerDetails


Effect = Union[CheckSeat, RefreshSnapshot, SubmitReservation, None]
Transition = Tuple[PickerState, Effect]


def _expect(state, kind, action: str):
    if not isinstance(state, kind):
        raise PickerActionError(state, action)


def initial_state() -> SelectingSeat:
    return SelectingSeat()


def snapshot_loaded(state: SelectingSeat, occupied) -> Transition:
    _expect(state, SelectingSeat, "load availability")
    occupied = frozenset(occupied)
    if state.selected is not None and state.selected in occupied:
        return replace(
            state,
            occupied=occupied,
            selected=None,
            checking=False,
            message=f"Seat {state.selected} has just been booked by someone else. Please select another seat.",
        ), None
    return replace(state, occupied=occupied), None


def toggle_seat(state: SelectingSeat, seat_id: str, bookable: FrozenSet[str]) -> Transition:
    """
    Select or deselect one seat. Seats known to be occupied are refused
    without a network call; a newly selected free seat asks for a re-check.
    """
    _expect(state, SelectingSeat, "select a seat")
    if state.checking:
        return state, None
    if seat_id == state.selected:
        return replace(state, selected=None, message=None), None
    if not bookable:
        return replace(state, message=BOOKING_UNAVAILABLE), None
    if seat_id not in bookable:
        return replace(state, message=f"Seat {seat_id} is not on this bus"), None
    if seat_id in state.occupied:
        return replace(state, message=f"Seat {seat_id} is already booked"), None
    return replace(state, selected=seat_id, checking=True, message=None), CheckSeat(seat_id)


def seat_checked(state: SelectingSeat, seat_id: str, available: bool) -> Transition:
    _expect(state, SelectingSeat, "record a seat check")
    if state.selected != seat_id:
        return state, None
    if available:
        return replace(state, checking=False), None
    return replace(
        state,
        selected=None,
        checking=False,
        occupied=state.occupied | {seat_id},
        message=f"Seat {seat_id} has just been booked by someone else. Please select another seat.",
    ), None


def seat_check_failed(state: SelectingSeat, seat_id: str) -> Transition:
    """The early check is best effort; the writer re-checks at commit anyway"""
    _expect(state, SelectingSeat, "record a seat check")
    if state.selected != seat_id:
        return state, None
    return replace(state, checking=False), None


def proceed_to_details(state: SelectingSeat) -> Transition:
    _expect(state, SelectingSeat, "continue to passenger details")
    if state.selected is None or state.checking:
        return replace(state, message=SELECT_SEAT_FIRST), None
    return EnteringDetails(seat_id=state.selected, occupied=state.occupied), None


def validate_details(details: PassengerDetails) -> Tuple[Tuple[str, str], ...]:
    errors = []
    if not (details.name or "").strip():
        errors.append(("passenger_name", "Enter the passenger name"))
    if not is_valid_phone(details.phone):
        errors.append(("passenger_phone", "Enter a valid phone number"))
    return tuple(errors)


def submit_details(state: EnteringDetails, details: PassengerDetails) -> Transition:
    _expect(state, EnteringDetails, "review the booking")
    errors = validate_details(details)
    if errors:
        return replace(state, details=details, errors=errors), None
    return Confirming(seat_id=state.seat_id, occupied=state.occupied, details=details), None


def go_back(state: PickerState) -> Transition:
    if isinstance(state, EnteringDetails):
        return SelectingSeat(occupied=state.occupied, selected=state.seat_id), None
    if isinstance(state, Confirming) and not state.submitting:
        return EnteringDetails(seat_id=state.seat_id, occupied=state.occupied, details=state.details), None
    raise PickerActionError(state, "go back")


def submit(state: Confirming) -> Transition:
    """Start the write; a second submit while one is in flight does nothing"""
    _expect(state, Confirming, "submit")
    if state.submitting:
        return state, None
    return replace(state, submitting=True, message=None), SubmitReservation(state.seat_id, state.details)


def submit_succeeded(state: Confirming, reservation: Reservation) -> Transition:
    _expect(state, Confirming, "finish booking")
    return initial_state(), RefreshSnapshot()


def submit_conflicted(state: Confirming, seat_id: str) -> Transition:
    """Back to seat selection; the same seat is never retried automatically"""
    _expect(state, Confirming, "handle a seat conflict")
    return SelectingSeat(
        occupied=state.occupied | {seat_id},
        selected=None,
        message=f"Seat {seat_id} was just booked by someone else. Please pick another seat.",
    ), RefreshSnapshot()


def submit_rejected(state: Confirming, field_name: Optional[str], message: str) -> Transition:
    _expect(state, Confirming, "handle a rejected booking")
    if field_name in DETAIL_FIELDS:
        return EnteringDetails(
            seat_id=state.seat_id,
            occupied=state.occupied,
            details=state.details,
            errors=((field_name, message),),
        ), None
    return replace(state, submitting=False, message=message), None


def submit_failed(state: Confirming, message: str = RETRY_LATER) -> Transition:
    _expect(state, Confirming, "handle a failed booking")
    return replace(state, submitting=False, message=message), None


def close(state: PickerState) -> Transition:
    """Abandon the flow; nothing has been written unless a submit completed"""
    return Closed(), None


class SeatPickerController:
    """
    Drives the picker for one bus on one travel date, performing the effects
    the transitions ask for.
    """

    def __init__(
        self,
        availability: AvailabilityService,
        writer: ReservationWriter,
        vehicle_id: str,
        service_date: date,
        operator_id: str,
        amount: Decimal,
        vehicle_class: Optional[str],
        seat_capacity: Optional[int] = None,
        party_id: Optional[str] = None,
        vehicle_name: Optional[str] = None,
    ):
        self.availability = availability
        self.writer = writer
        self.vehicle_id = vehicle_id
        self.service_date = service_date
        self.operator_id = operator_id
        self.amount = amount
        self.vehicle_class = vehicle_class
        self.party_id = party_id
        self.vehicle_name = vehicle_name

        self.layout = generate_layout(vehicle_class, seat_capacity)
        self.bookable = frozenset(seat_ids(self.layout))
        self.state: PickerState = initial_state()
        self.last_reservation: Optional[Reservation] = None

    @property
    def booking_available(self) -> bool:
        return bool(self.bookable)

    async def open(self) -> PickerState:
        self.state = initial_state()
        if not self.booking_available:
            self.state = SelectingSeat(message=BOOKING_UNAVAILABLE)
            return self.state
        await self._perform(RefreshSnapshot())
        return self.state

    async def select_seat(self, seat_id: str) -> PickerState:
        await self._apply(toggle_seat(self.state, seat_id, self.bookable))
        return self.state

    async def continue_to_details(self) -> PickerState:
        await self._apply(proceed_to_details(self.state))
        return self.state

    async def enter_details(
        self,
        name: str,
        phone: str,
        boarding_point: Optional[str] = None,
        dropping_point: Optional[str] = None,
    ) -> PickerState:
        details = PassengerDetails(name, phone, boarding_point, dropping_point)
        await self._apply(submit_details(self.state, details))
        return self.state

    async def back(self) -> PickerState:
        await self._apply(go_back(self.state))
        return self.state

    async def confirm(self) -> Optional[Reservation]:
        """Submit the booking; returns the reservation when it was written"""
        self.last_reservation = None
        await self._apply(submit(self.state))
        return self.last_reservation

    async def close(self) -> PickerState:
        await self._apply(close(self.state))
        return self.state

    async def _apply(self, transition: Transition):
        self.state, effect = transition
        await self._perform(effect)

    async def _perform(self, effect: Effect):
        if effect is None:
            return
        if isinstance(effect, CheckSeat):
            await self._check_seat(effect.seat_id)
        elif isinstance(effect, RefreshSnapshot):
            await self._refresh()
        elif isinstance(effect, SubmitReservation):
            await self._submit(effect)

    async def _refresh(self):
        if not isinstance(self.state, SelectingSeat):
            return
        occupied = await self.availability.get_occupied_seats(self.vehicle_id, self.service_date)
        # The user may have closed the picker while we waited
        if isinstance(self.state, SelectingSeat):
            self.state, _ = snapshot_loaded(self.state, occupied)

    async def _check_seat(self, seat_id: str):
        try:
            available = await self.availability.is_seat_available(self.vehicle_id, self.service_date, seat_id)
        except StoreUnavailableError:
            logger.warning(f"Early availability check for seat {seat_id} failed")
            if isinstance(self.state, SelectingSeat):
                self.state, _ = seat_check_failed(self.state, seat_id)
            return
        if isinstance(self.state, SelectingSeat):
            self.state, _ = seat_checked(self.state, seat_id, available)

    def _reservation_input(self, effect: SubmitReservation) -> ReservationInput:
        return ReservationInput(
            vehicle_id=self.vehicle_id,
            operator_id=self.operator_id,
            service_date=self.service_date,
            seat_id=effect.seat_id,
            passenger_name=effect.details.name,
            passenger_phone=effect.details.phone,
            amount=self.amount,
            boarding_point=effect.details.boarding_point,
            dropping_point=effect.details.dropping_point,
            party_id=self.party_id,
            vehicle_name=self.vehicle_name,
            vehicle_type=self.vehicle_class,
        )

    async def _submit(self, effect: SubmitReservation):
        try:
            reservation = await self.writer.create_reservation(self._reservation_input(effect))
        except SeatConflictError as e:
            if not self._closed_meanwhile(effect.seat_id, "seat taken"):
                await self._apply(submit_conflicted(self.state, e.seat_id))
        except ValidationError as e:
            if not self._closed_meanwhile(effect.seat_id, f"rejected: {e.message}"):
                await self._apply(submit_rejected(self.state, e.field, e.message))
        except StoreUnavailableError:
            await self._resolve_unknown_outcome(effect)
        else:
            await self._finish(reservation)

    def _closed_meanwhile(self, seat_id: str, outcome: str) -> bool:
        """
        A write cannot be cancelled once sent. When the picker was closed or
        reopened while it ran, the outcome is only logged.
        """
        if isinstance(self.state, Confirming) and self.state.submitting and self.state.seat_id == seat_id:
            return False
        logger.info(f"Booking of seat {seat_id} finished after the picker moved on: {outcome}")
        return True

    async def _finish(self, reservation: Reservation):
        self.last_reservation = reservation
        if not self._closed_meanwhile(reservation.seat_id, f"reservation {reservation.id} written"):
            await self._apply(submit_succeeded(self.state, reservation))

    async def _resolve_unknown_outcome(self, effect: SubmitReservation):
        """
        The write may have landed even though we saw an error. Look at who
        holds the seat now before offering another attempt.
        """
        try:
            holder = await self.availability.get_seat_holder(
                self.vehicle_id, self.service_date, effect.seat_id
            )
        except StoreUnavailableError:
            if not self._closed_meanwhile(effect.seat_id, "outcome unknown"):
                await self._apply(submit_failed(self.state))
            return

        if holder is not None and self._is_ours(holder, effect.details):
            logger.info(f"Reservation {holder.id} landed despite a failed response")
            await self._finish(holder)
        elif self._closed_meanwhile(effect.seat_id, "not written" if holder is None else "seat taken"):
            return
        elif holder is None:
            await self._apply(submit_failed(self.state))
        else:
            await self._apply(submit_conflicted(self.state, effect.seat_id))

    def _is_ours(self, holder: Reservation, details: PassengerDetails) -> bool:
        return (
            holder.party_id == self.party_id
            and holder.passenger_phone == details.phone.strip()
            and holder.passenger_name == details.name.strip()
        )
