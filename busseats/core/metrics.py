"""
Booking and HTTP request metrics
"""

import time
import logging
from typing import Dict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import asyncio
from prometheus_client import Counter, Histogram

from busseats.core.exceptions import SeatConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Registered once per process; main.py may also run as __main__
REQUEST_COUNT = Counter(
    "busseats_requests_total",
    "Total requests",
    ["method", "endpoint", "status"]
)
REQUEST_DURATION = Histogram(
    "busseats_request_duration_seconds",
    "Request duration",
    ["method", "endpoint"]
)


@dataclass
class BookingMetrics:
    """Reservation system metrics"""
    total_attempts: int = 0
    successful_bookings: int = 0
    seat_conflicts: int = 0
    failed_bookings: int = 0
    store_failures: int = 0
    cancelled_bookings: int = 0
    completed_bookings: int = 0
    duplicates_resolved: int = 0

    booking_times: list = field(default_factory=list)

    def add_booking_time(self, duration: float):
        self.booking_times.append(duration)
        if len(self.booking_times) > 1000:
            self.booking_times = self.booking_times[-1000:]

    def get_percentiles(self) -> Dict[str, float]:
        if not self.booking_times:
            return {"p50": 0.0, "p95": 0.0, "p99": 0.0}

        sorted_times = sorted(self.booking_times)
        length = len(sorted_times)
        return {
            "p50": sorted_times[int(length * 0.5)],
            "p95": sorted_times[int(length * 0.95)],
            "p99": sorted_times[int(length * 0.99)],
        }

    def to_dict(self) -> Dict:
        percentiles = self.get_percentiles()
        return {
            "total_attempts": self.total_attempts,
            "successful_bookings": self.successful_bookings,
            "seat_conflicts": self.seat_conflicts,
            "failed_bookings": self.failed_bookings,
            "store_failures": self.store_failures,
            "cancelled_bookings": self.cancelled_bookings,
            "completed_bookings": self.completed_bookings,
            "duplicates_resolved": self.duplicates_resolved,
            "percentiles_ms": {k: v * 1000 for k, v in percentiles.items()},
        }


class MetricsCollector:
    """Metrics collector for the reservation writer and lifecycle"""

    def __init__(self):
        self.metrics = BookingMetrics()
        self.logger = logging.getLogger(__name__)
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def track_booking_attempt(self):
        """Count one reservation attempt and classify how it ended"""
        start_time = time.time()
        try:
            yield
        except SeatConflictError:
            async with self._lock:
                self.metrics.total_attempts += 1
                self.metrics.seat_conflicts += 1
            raise
        except StoreUnavailableError:
            async with self._lock:
                self.metrics.total_attempts += 1
                self.metrics.failed_bookings += 1
                self.metrics.store_failures += 1
            raise
        except Exception:
            async with self._lock:
                self.metrics.total_attempts += 1
                self.metrics.failed_bookings += 1
            raise
        else:
            duration = time.time() - start_time
            async with self._lock:
                self.metrics.total_attempts += 1
                self.metrics.successful_bookings += 1
                self.metrics.add_booking_time(duration)
            if duration > 5.0:
                self.logger.warning(f"Slow reservation write: {duration:.2f}s")

    async def record_status_change(self, to_status: str):
        async with self._lock:
            if to_status == "cancelled":
                self.metrics.cancelled_bookings += 1
            elif to_status == "completed":
                self.metrics.completed_bookings += 1

    async def record_duplicates_resolved(self, count: int):
        async with self._lock:
            self.metrics.duplicates_resolved += count

    async def get_metrics(self) -> Dict:
        async with self._lock:
            return self.metrics.to_dict()

    async def reset_metrics(self):
        async with self._lock:
            self.metrics = BookingMetrics()


metrics_collector = MetricsCollector()
