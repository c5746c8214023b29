"""
Duplicate booking reconciliation
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

from busseats.core.metrics import MetricsCollector, metrics_collector
from busseats.models.reservation import ReservationStatus
from busseats.schemas.reservation import Reservation
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)

SeatKey = Tuple[str, object, str]


class ReservationReconciler:
    """
    Finds seats held by more than one booked reservation, which a plain
    check-then-act write can produce under a photo-finish, and cancels all
    but the earliest.
    """

    def __init__(self, store: ReservationStore, metrics: MetricsCollector = None):
        self.store = store
        self.metrics = metrics or metrics_collector

    async def find_duplicates(self) -> Dict[SeatKey, List[Reservation]]:
        groups: Dict[SeatKey, List[Reservation]] = defaultdict(list)
        for reservation in await self.store.list_by_status(ReservationStatus.BOOKED):
            groups[reservation.seat_key].append(reservation)

        return {
            key: sorted(members, key=lambda r: (r.created_at, r.id))
            for key, members in groups.items()
            if len(members) > 1
        }

    async def resolve(self) -> List[str]:
        """Cancel the later duplicates; returns the cancelled reservation ids"""
        cancelled = []
        for (vehicle_id, service_date, seat_id), members in (await self.find_duplicates()).items():
            keeper, losers = members[0], members[1:]
            for loser in losers:
                logger.warning(
                    f"Duplicate booking on {vehicle_id}/{service_date} seat {seat_id}: "
                    f"keeping {keeper.id}, cancelling {loser.id}"
                )
                updated = await self.store.update_status(
                    loser.id, ReservationStatus.CANCELLED, expected_status=ReservationStatus.BOOKED
                )
                if updated is not None:
                    cancelled.append(loser.id)

        if cancelled:
            await self.metrics.record_duplicates_resolved(len(cancelled))
        return cancelled
