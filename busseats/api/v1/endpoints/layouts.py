"""
Seat layout endpoints
"""

from typing import Any, Optional
from fastapi import APIRouter, Query

from busseats.schemas.layout import LayoutResponse
from busseats.services.seat_layout import generate_layout, layout_capacity

router = APIRouter()


@router.get("/{vehicle_class}", response_model=LayoutResponse)
async def get_layout(
    vehicle_class: str,
    seat_capacity: Optional[int] = Query(None, ge=0),
) -> Any:
    """
    Seat grid for a vehicle class; ``None`` cells are aisle gaps.
    An unknown class returns an empty grid with ``bookable`` false.
    """
    layout = generate_layout(vehicle_class, seat_capacity)
    rows = [
        [None if cell is None else {"seat_id": cell.seat_id, "side": cell.side} for cell in row]
        for row in layout
    ]
    return {
        "vehicle_class": vehicle_class,
        "capacity": layout_capacity(layout),
        "bookable": bool(layout),
        "rows": rows,
    }
