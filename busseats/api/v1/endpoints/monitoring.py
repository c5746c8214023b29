"""
Booking metrics endpoints for operations staff
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends

from busseats.core.metrics import metrics_collector
from busseats.core.security import Party, PartyRole, require_role

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/metrics")
async def get_booking_metrics(
    party: Party = Depends(require_role(PartyRole.ADMIN)),
) -> Any:
    """
    Reservation attempts, conflicts, status changes and write latency
    """
    return {"booking_system": await metrics_collector.get_metrics()}


@router.get("/metrics/summary")
async def get_metrics_summary(
    party: Party = Depends(require_role(PartyRole.ADMIN)),
) -> Any:
    """
    High-level view of the booking counters
    """
    metrics = await metrics_collector.get_metrics()
    attempts = metrics["total_attempts"]
    success_rate = (metrics["successful_bookings"] / attempts * 100) if attempts else 100.0

    return {
        "system_status": "operational" if metrics["store_failures"] == 0 else "degraded",
        "total_attempts": attempts,
        "success_rate": f"{success_rate:.1f}%",
        "p95_write_time": f"{metrics['percentiles_ms']['p95']:.0f}ms",
        "errors": {
            "seat_conflicts": metrics["seat_conflicts"],
            "store_failures": metrics["store_failures"],
        },
    }


@router.post("/metrics/reset")
async def reset_metrics(
    party: Party = Depends(require_role(PartyRole.ADMIN)),
) -> Any:
    """
    Clear all collected booking metrics
    """
    await metrics_collector.reset_metrics()
    logger.info(f"Booking metrics reset by {party.party_id}")

    return {"message": "Metrics have been reset successfully"}
