"""
Reservation endpoints: create, list, cancel, complete
"""

from typing import Any, List, Optional
import logging
from fastapi import APIRouter, Depends, Response, status

from busseats.api.deps import get_lifecycle_manager, get_reconciler, get_reservation_writer
from busseats.core.exceptions import AuthorizationError, NotFoundError
from busseats.core.security import (
    Party,
    PartyRole,
    get_current_party,
    get_optional_party,
    require_role,
)
from busseats.schemas.reservation import (
    ReconcileResponse,
    Reservation,
    ReservationCreate,
    ReservationInput,
)
from busseats.services.lifecycle_service import BookingLifecycleManager, business_now
from busseats.services.reconciliation_service import ReservationReconciler
from busseats.services.reservation_writer import ReservationWriter

logger = logging.getLogger(__name__)
router = APIRouter()


def _can_see(reservation: Reservation, party: Party) -> bool:
    if party.role == PartyRole.ADMIN:
        return True
    if party.role == PartyRole.OPERATOR:
        return reservation.operator_id == party.party_id
    return reservation.party_id == party.party_id


async def _get_visible(
    reservation_id: str,
    party: Party,
    lifecycle: BookingLifecycleManager,
) -> Reservation:
    reservation = await lifecycle.get(reservation_id)
    if not _can_see(reservation, party):
        # Other parties' reservations are reported as missing
        raise NotFoundError("Reservation", reservation_id)
    return reservation


@router.post("/", response_model=Reservation, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    reservation_in: ReservationCreate,
    party: Optional[Party] = Depends(get_optional_party),
    writer: ReservationWriter = Depends(get_reservation_writer),
) -> Any:
    """
    Book one seat. A passenger token books for that passenger; an operator
    token books at the counter for its own buses with no passenger party.
    """
    party_id = None
    if party is not None:
        if party.role == PartyRole.OPERATOR and reservation_in.operator_id != party.party_id:
            raise AuthorizationError("Operators can only book seats on their own buses")
        if party.role == PartyRole.PASSENGER:
            party_id = party.party_id

    data = ReservationInput(**reservation_in.model_dump(), party_id=party_id)
    return await writer.create_reservation(data)


@router.get("/", response_model=List[Reservation])
async def list_my_reservations(
    status_filter: Optional[str] = None,
    party: Party = Depends(get_current_party),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Any:
    """
    The caller's reservations, newest first
    """
    return await lifecycle.list_by_party(party.party_id, status_filter)


@router.get("/operator", response_model=List[Reservation])
async def list_operator_reservations(
    status_filter: Optional[str] = None,
    operator_id: Optional[str] = None,
    party: Party = Depends(require_role(PartyRole.OPERATOR, PartyRole.ADMIN)),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Any:
    """
    Reservations on an operator's buses. Operators see their own; admins pass
    ``operator_id``.
    """
    if party.role == PartyRole.OPERATOR:
        operator_id = party.party_id
    elif not operator_id:
        operator_id = party.party_id
    return await lifecycle.list_by_operator(operator_id, status_filter)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_duplicates(
    party: Party = Depends(require_role(PartyRole.ADMIN)),
    reconciler: ReservationReconciler = Depends(get_reconciler),
) -> Any:
    """
    Cancel later duplicates on seats held by more than one booking
    """
    duplicates = await reconciler.find_duplicates()
    cancelled = await reconciler.resolve()
    logger.info(f"Reconciliation by {party.party_id}: {len(duplicates)} groups, {len(cancelled)} cancelled")
    return {"duplicate_groups": len(duplicates), "cancelled_ids": cancelled}


@router.get("/{reservation_id}", response_model=Reservation)
async def get_reservation(
    reservation_id: str,
    party: Party = Depends(get_current_party),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Any:
    return await _get_visible(reservation_id, party, lifecycle)


@router.post("/{reservation_id}/cancel", response_model=Reservation)
async def cancel_reservation(
    reservation_id: str,
    party: Party = Depends(get_current_party),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Any:
    """
    Cancel a booking. Passengers can cancel until the end of the travel day;
    operators and admins are not held to that window.
    """
    await _get_visible(reservation_id, party, lifecycle)
    now = business_now() if party.role == PartyRole.PASSENGER else None
    return await lifecycle.cancel(reservation_id, now=now)


@router.post("/{reservation_id}/complete", response_model=Reservation)
async def complete_reservation(
    reservation_id: str,
    party: Party = Depends(require_role(PartyRole.OPERATOR, PartyRole.ADMIN)),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Any:
    await _get_visible(reservation_id, party, lifecycle)
    return await lifecycle.complete(reservation_id)


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reservation(
    reservation_id: str,
    party: Party = Depends(require_role(PartyRole.ADMIN)),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle_manager),
) -> Response:
    await lifecycle.delete(reservation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
