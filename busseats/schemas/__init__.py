"""
Pydantic schemas
"""

from busseats.schemas.base import BaseSchema, IDSchema, TimestampSchema
from busseats.schemas.reservation import (
    ReservationInput,
    ReservationDraft,
    Reservation,
    ReservationCreate,
    OccupiedSeatsResponse,
    SeatAvailabilityResponse,
    ReconcileResponse,
)
from busseats.schemas.layout import SeatCellSchema, LayoutResponse

__all__ = [
    "BaseSchema",
    "IDSchema",
    "TimestampSchema",
    "ReservationInput",
    "ReservationDraft",
    "Reservation",
    "ReservationCreate",
    "OccupiedSeatsResponse",
    "SeatAvailabilityResponse",
    "ReconcileResponse",
    "SeatCellSchema",
    "LayoutResponse",
]
