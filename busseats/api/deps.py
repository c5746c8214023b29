"""
Request-scoped wiring of the store and services
"""

from fastapi import Depends, Request

from busseats.config import settings
from busseats.core.redis import redis_manager
from busseats.services.availability_service import AvailabilityService
from busseats.services.lifecycle_service import BookingLifecycleManager
from busseats.services.reconciliation_service import ReservationReconciler
from busseats.services.reservation_writer import ReservationWriter
from busseats.store import ReservationStore, build_store


def get_store(request: Request) -> ReservationStore:
    """The application's store, built from settings on first use"""
    store = getattr(request.app.state, "store", None)
    if store is None:
        store = build_store(settings.STORE_BACKEND)
        request.app.state.store = store
    return store


def get_lock_manager(request: Request):
    if not settings.SEAT_LOCK_ENABLED:
        return None
    return getattr(request.app.state, "lock_manager", None) or redis_manager


def get_availability_service(store: ReservationStore = Depends(get_store)) -> AvailabilityService:
    return AvailabilityService(store)


def get_reservation_writer(
    store: ReservationStore = Depends(get_store),
    lock_manager=Depends(get_lock_manager),
) -> ReservationWriter:
    return ReservationWriter(store, lock_manager=lock_manager)


def get_lifecycle_manager(store: ReservationStore = Depends(get_store)) -> BookingLifecycleManager:
    return BookingLifecycleManager(store)


def get_reconciler(store: ReservationStore = Depends(get_store)) -> ReservationReconciler:
    return ReservationReconciler(store)
