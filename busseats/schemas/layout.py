"""
Seat layout schemas
"""

from typing import List, Optional

from busseats.schemas.base import BaseSchema


class SeatCellSchema(BaseSchema):
    seat_id: str
    side: str


class LayoutResponse(BaseSchema):
    vehicle_class: str
    capacity: int
    bookable: bool
    rows: List[List[Optional[SeatCellSchema]]]
