"""
Seat layout generation

A layout is a list of rows; each row is a list of ``SeatCell`` or ``None``
for an aisle gap. It is a pure function of the vehicle class (and, for the
capacity-driven class, the seat capacity) and never touches reservation data.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import math

LEFT = "left"
RIGHT = "right"


@dataclass(frozen=True)
class SeatCell:
    seat_id: str
    side: str


Row = List[Optional[SeatCell]]
Layout = List[Row]
LayoutBuilder = Callable[[Optional[int]], Layout]

# Deluxe coaches label the two front rows by hand: Latin on the driver side,
# Devanagari on the door side. Everything behind them is numbered.
DELUXE_FRONT_ROWS = [
    (("A", "B"), ("क", "ख")),
    (("C", "D"), ("ग", "घ")),
]
DELUXE_NUMBERED_ROWS = 7
MICRO_ROWS = 5


def _four_across(left: tuple, right: tuple) -> Row:
    return [
        SeatCell(left[0], LEFT),
        SeatCell(left[1], LEFT),
        None,
        SeatCell(right[0], RIGHT),
        SeatCell(right[1], RIGHT),
    ]


def _deluxe(seat_capacity: Optional[int] = None) -> Layout:
    rows = [_four_across(left, right) for left, right in DELUXE_FRONT_ROWS]
    number = 1
    for _ in range(DELUXE_NUMBERED_ROWS):
        labels = [str(number + offset) for offset in range(4)]
        rows.append(_four_across((labels[0], labels[1]), (labels[2], labels[3])))
        number += 4
    return rows


def _micro(seat_capacity: Optional[int] = None) -> Layout:
    rows = []
    number = 1
    for _ in range(MICRO_ROWS):
        rows.append([
            SeatCell(str(number), LEFT),
            SeatCell(str(number + 1), RIGHT),
            SeatCell(str(number + 2), RIGHT),
        ])
        number += 3
    return rows


def _standard(seat_capacity: Optional[int] = None) -> Layout:
    """Row number plus column letter (1A 1B | 1C 1D), filled up to capacity"""
    if not seat_capacity or seat_capacity <= 0:
        return []

    rows = []
    placed = 0
    for row in range(1, math.ceil(seat_capacity / 4) + 1):
        cells: Row = []
        for col in range(1, 5):
            if placed >= seat_capacity:
                break
            if col == 3:
                cells.append(None)
            cells.append(SeatCell(f"{row}{chr(64 + col)}", LEFT if col <= 2 else RIGHT))
            placed += 1
        rows.append(cells)
    return rows


_FAMILIES: Dict[str, LayoutBuilder] = {
    "deluxe": _deluxe,
    "ac deluxe": _deluxe,
    "super deluxe": _deluxe,
    "hiace": _micro,
    "micro": _micro,
    "standard": _standard,
}


def _normalize(vehicle_class: Optional[str]) -> str:
    return " ".join((vehicle_class or "").lower().split())


def register_layout_family(vehicle_class: str, builder: LayoutBuilder) -> None:
    """Add or replace the layout used for a vehicle class"""
    _FAMILIES[_normalize(vehicle_class)] = builder


def unregister_layout_family(vehicle_class: str) -> None:
    _FAMILIES.pop(_normalize(vehicle_class), None)


def known_vehicle_classes() -> List[str]:
    return sorted(_FAMILIES)


def generate_layout(vehicle_class: Optional[str], seat_capacity: Optional[int] = None) -> Layout:
    """
    Build the seat grid for a vehicle class.

    An unrecognised class gives an empty layout: booking is unavailable for
    that vehicle, which is not an error.
    """
    builder = _FAMILIES.get(_normalize(vehicle_class))
    if builder is None:
        return []
    return builder(seat_capacity)


def seat_ids(layout: Layout) -> List[str]:
    """Seat identifiers in render order"""
    return [cell.seat_id for row in layout for cell in row if cell is not None]


def layout_capacity(layout: Layout) -> int:
    return len(seat_ids(layout))
