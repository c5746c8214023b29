"""
Reservation schemas
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field

from busseats.models.reservation import ReservationStatus
from busseats.schemas.base import BaseSchema, IDSchema, TimestampSchema


class ReservationInput(BaseSchema):
    """
    Reservation request as it arrives from the seat picker or the counter.

    Fields are deliberately loose; the reservation writer validates them and
    reports the offending field.
    """
    vehicle_id: str
    operator_id: str
    service_date: Union[date, str, None] = None
    seat_id: Optional[str] = None
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    amount: Union[Decimal, int, float, str] = Decimal("0")
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None
    party_id: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None


class ReservationDraft(BaseSchema):
    """Validated reservation about to be written; the store assigns id and timestamps"""
    vehicle_id: str
    operator_id: str
    service_date: date
    seat_id: str
    passenger_name: str
    passenger_phone: str
    amount: Decimal
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None
    party_id: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None


class Reservation(IDSchema, TimestampSchema):
    """Stored reservation"""
    vehicle_id: str
    operator_id: str
    service_date: date
    seat_id: str
    passenger_name: str
    passenger_phone: str
    amount: Decimal
    status: ReservationStatus
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None
    party_id: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None

    @property
    def seat_key(self) -> tuple:
        return (self.vehicle_id, self.service_date, self.seat_id)


class ReservationCreate(BaseSchema):
    """HTTP body for creating a reservation; party comes from the token"""
    vehicle_id: str
    operator_id: str
    service_date: Union[date, str, None] = None
    seat_id: Optional[str] = None
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    amount: Union[Decimal, int, float, str] = Decimal("0")
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None


class OccupiedSeatsResponse(BaseSchema):
    vehicle_id: str
    service_date: date
    occupied: List[str] = Field(default_factory=list)


class SeatAvailabilityResponse(BaseSchema):
    vehicle_id: str
    service_date: date
    seat_id: str
    available: bool


class ReconcileResponse(BaseSchema):
    duplicate_groups: int
    cancelled_ids: List[str] = Field(default_factory=list)
