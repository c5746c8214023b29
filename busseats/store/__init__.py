"""
Document store adapters
"""

from busseats.store.base import ReservationStore
from busseats.store.memory import InMemoryReservationStore
from busseats.store.sql import SqlReservationStore


def build_store(backend: str, session_factory=None) -> ReservationStore:
    if backend == "memory":
        return InMemoryReservationStore(conditional_insert=True)
    return SqlReservationStore(session_factory)


__all__ = [
    "ReservationStore",
    "InMemoryReservationStore",
    "SqlReservationStore",
    "build_store",
]
