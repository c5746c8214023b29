"""
Document store interface consumed by the seat allocation core
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from busseats.models.reservation import ReservationStatus
from busseats.schemas.reservation import Reservation, ReservationDraft


class ReservationStore(ABC):
    """
    Keyed reservation documents with equality/range filters and ordering.

    No multi-document transactions are assumed. Stores that can do an atomic
    "insert unless a booked reservation already holds this seat" set
    ``supports_conditional_insert`` and implement ``insert_if_seat_free``.
    """

    supports_conditional_insert: bool = False

    @abstractmethod
    async def find_booked(
        self,
        vehicle_id: str,
        service_date: date,
        seat_id: Optional[str] = None,
    ) -> List[Reservation]:
        """Booked reservations for a vehicle and date, optionally one seat"""

    @abstractmethod
    async def list_by_party(
        self,
        party_id: str,
        status: Optional[ReservationStatus] = None,
    ) -> List[Reservation]:
        """A party's reservations, newest first"""

    @abstractmethod
    async def list_by_operator(
        self,
        operator_id: str,
        status: Optional[ReservationStatus] = None,
    ) -> List[Reservation]:
        """An operator's reservations, newest first"""

    @abstractmethod
    async def list_by_status(
        self,
        status: ReservationStatus,
        service_date_before: Optional[date] = None,
    ) -> List[Reservation]:
        """Reservations in one status, oldest first"""

    @abstractmethod
    async def get(self, reservation_id: str) -> Optional[Reservation]:
        ...

    @abstractmethod
    async def insert(self, draft: ReservationDraft) -> Reservation:
        """Write a booked reservation; the store assigns id and created_at"""

    async def insert_if_seat_free(self, draft: ReservationDraft) -> Reservation:
        """Atomic conditional insert; raises SeatConflictError if the seat is held"""
        raise NotImplementedError(f"{type(self).__name__} has no conditional insert")

    @abstractmethod
    async def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: Optional[ReservationStatus] = None,
    ) -> Optional[Reservation]:
        """
        Set the status field. With expected_status the update only applies if
        the current status still matches; otherwise (or if the document is
        missing) None is returned.
        """

    @abstractmethod
    async def delete(self, reservation_id: str) -> bool:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
