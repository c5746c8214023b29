"""
Database models
"""

from busseats.models.reservation import Reservation, ReservationStatus

__all__ = [
    "Reservation",
    "ReservationStatus",
]
