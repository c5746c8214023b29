"""
SQLAlchemy-backed reservation store
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from busseats.core.database import DatabaseManager
from busseats.core.exceptions import SeatConflictError, StoreUnavailableError
from busseats.models.base import utcnow
from busseats.models.reservation import Reservation as ReservationModel, ReservationStatus
from busseats.schemas.reservation import Reservation, ReservationDraft
from busseats.store.base import ReservationStore

logger = logging.getLogger(__name__)


BOOKED_SEAT_INDEX = "uq_reservations_booked_seat"


def is_booked_seat_violation(error: IntegrityError) -> bool:
    """True when the failure came from the one-booked-row-per-seat index"""
    message = str(error.orig)
    if BOOKED_SEAT_INDEX in message:
        return True
    # SQLite names the columns rather than the index
    return "UNIQUE constraint failed" in message and "reservations.seat_id" in message


@asynccontextmanager
async def translate_errors(operation: str):
    """Map driver-level failures onto the core's error taxonomy"""
    try:
        yield
    except (OperationalError, ConnectionError, TimeoutError) as e:
        logger.error(f"Store unavailable during {operation}: {type(e).__name__}: {e}")
        raise StoreUnavailableError(operation)
    except IntegrityError:
        raise
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.error(f"Connection lost during {operation}: {e}")
            raise StoreUnavailableError(operation)
        raise


class SqlReservationStore(ReservationStore):
    """
    Reservations table with a partial unique index on
    (vehicle_id, service_date, seat_id) where status = 'booked', so inserting
    a second booked reservation for a seat is rejected by the database.
    """

    supports_conditional_insert = True

    def __init__(self, session_factory: async_sessionmaker = None):
        self.db_manager = DatabaseManager(session_factory)

    async def find_booked(self, vehicle_id, service_date, seat_id=None):
        stmt = select(ReservationModel).where(
            ReservationModel.vehicle_id == vehicle_id,
            ReservationModel.service_date == service_date,
            ReservationModel.status == ReservationStatus.BOOKED,
        )
        if seat_id is not None:
            stmt = stmt.where(ReservationModel.seat_id == seat_id)

        async with translate_errors("find_booked"):
            async with self.db_manager.read_session() as session:
                result = await session.execute(stmt)
                return [Reservation.model_validate(row) for row in result.scalars().all()]

    async def _list(self, operation: str, stmt):
        async with translate_errors(operation):
            async with self.db_manager.read_session() as session:
                result = await session.execute(stmt)
                return [Reservation.model_validate(row) for row in result.scalars().all()]

    async def list_by_party(self, party_id, status=None):
        stmt = select(ReservationModel).where(ReservationModel.party_id == party_id)
        if status is not None:
            stmt = stmt.where(ReservationModel.status == ReservationStatus(status))
        stmt = stmt.order_by(ReservationModel.created_at.desc(), ReservationModel.id.desc())
        return await self._list("list_by_party", stmt)

    async def list_by_operator(self, operator_id, status=None):
        stmt = select(ReservationModel).where(ReservationModel.operator_id == operator_id)
        if status is not None:
            stmt = stmt.where(ReservationModel.status == ReservationStatus(status))
        stmt = stmt.order_by(ReservationModel.created_at.desc(), ReservationModel.id.desc())
        return await self._list("list_by_operator", stmt)

    async def list_by_status(self, status, service_date_before=None):
        stmt = select(ReservationModel).where(ReservationModel.status == ReservationStatus(status))
        if service_date_before is not None:
            stmt = stmt.where(ReservationModel.service_date < service_date_before)
        stmt = stmt.order_by(ReservationModel.created_at.asc(), ReservationModel.id.asc())
        return await self._list("list_by_status", stmt)

    async def get(self, reservation_id):
        async with translate_errors("get"):
            async with self.db_manager.read_session() as session:
                row = await session.get(ReservationModel, reservation_id)
                return Reservation.model_validate(row) if row else None

    async def insert(self, draft: ReservationDraft) -> Reservation:
        row = ReservationModel(status=ReservationStatus.BOOKED, **draft.model_dump())
        try:
            async with translate_errors("insert"):
                async with self.db_manager.atomic_transaction() as session:
                    session.add(row)
                    await session.flush()
                    await session.refresh(row)
                    reservation = Reservation.model_validate(row)
        except IntegrityError as e:
            if not is_booked_seat_violation(e):
                logger.error(f"Reservation insert violated a constraint: {e.orig}")
                raise
            logger.warning(
                f"Unique booked-seat index rejected {draft.vehicle_id}/{draft.service_date}/{draft.seat_id}"
            )
            raise SeatConflictError(draft.seat_id)
        return reservation

    async def insert_if_seat_free(self, draft: ReservationDraft) -> Reservation:
        # The partial unique index makes the plain insert conditional
        return await self.insert(draft)

    async def update_status(self, reservation_id, status, expected_status=None):
        stmt = update(ReservationModel).where(ReservationModel.id == reservation_id)
        if expected_status is not None:
            stmt = stmt.where(ReservationModel.status == ReservationStatus(expected_status))
        stmt = stmt.values(status=ReservationStatus(status), updated_at=utcnow())

        async with translate_errors("update_status"):
            async with self.db_manager.atomic_transaction() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    return None
                row = await session.get(ReservationModel, reservation_id, populate_existing=True)
                return Reservation.model_validate(row)

    async def delete(self, reservation_id):
        async with translate_errors("delete"):
            async with self.db_manager.atomic_transaction() as session:
                result = await session.execute(
                    delete(ReservationModel).where(ReservationModel.id == reservation_id)
                )
                return result.rowcount > 0

    async def ping(self) -> bool:
        async with translate_errors("ping"):
            return await self.db_manager.ping()
