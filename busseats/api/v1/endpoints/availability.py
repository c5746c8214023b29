"""
Seat availability endpoints
"""

from typing import Any
from fastapi import APIRouter, Depends

from busseats.api.deps import get_availability_service
from busseats.schemas.reservation import OccupiedSeatsResponse, SeatAvailabilityResponse
from busseats.services.availability_service import AvailabilityService
from busseats.services.reservation_writer import parse_service_date

router = APIRouter()


@router.get("/{vehicle_id}/{service_date}", response_model=OccupiedSeatsResponse)
async def get_occupied_seats(
    vehicle_id: str,
    service_date: str,
    availability: AvailabilityService = Depends(get_availability_service),
) -> Any:
    """
    Seats already booked on this bus for the travel date. The answer may be
    stale by the time the client acts on it.
    """
    day = parse_service_date(service_date)
    occupied = await availability.get_occupied_seats(vehicle_id, day)
    return {
        "vehicle_id": vehicle_id,
        "service_date": day,
        "occupied": sorted(occupied),
    }


@router.get("/{vehicle_id}/{service_date}/{seat_id}", response_model=SeatAvailabilityResponse)
async def check_seat(
    vehicle_id: str,
    service_date: str,
    seat_id: str,
    availability: AvailabilityService = Depends(get_availability_service),
) -> Any:
    day = parse_service_date(service_date)
    return {
        "vehicle_id": vehicle_id,
        "service_date": day,
        "seat_id": seat_id,
        "available": await availability.is_seat_available(vehicle_id, day, seat_id),
    }
