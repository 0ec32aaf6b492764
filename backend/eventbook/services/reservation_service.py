"""
Reservation manager: reserve and cancel slots on events.

Each operation runs inside the per-event lock and commits before releasing
it, so within a worker the confirmations for one event are issued strictly
in commit order. The capacity decision itself is the ledger's atomic
conditional UPDATE, which also holds across workers.

Per (event, subject) the reservation moves NONE -> ACTIVE -> CANCELLED and
may go back to ACTIVE with a new reserve, which re-checks capacity.

If writing the reservation row fails after the ledger took a slot, the
transaction is rolled back, which undoes the increment together with the
row: the counter and the reservation set never diverge.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.errors import (
    AlreadyReserved,
    BookingError,
    EventFull,
    Forbidden,
    LedgerUnderflow,
    NotFound,
    NotReserved,
)
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_cancellation, record_reservation_attempt, reservation_latency
from eventbook.models.reservation import Reservation, ReservationStatus
from eventbook.services.authorization import Subject
from eventbook.services.event_service import get_event
from eventbook.services.ledger_service import CapacityLedger
from eventbook.services.locks import EventLockRegistry, event_locks

logger = get_logger(__name__)

_ATTEMPT_OUTCOMES = {
    NotFound: "not_found",
    AlreadyReserved: "already_reserved",
    EventFull: "full",
}

_CANCEL_OUTCOMES = {
    NotFound: "not_found",
    NotReserved: "not_reserved",
    Forbidden: "forbidden",
    LedgerUnderflow: "underflow",
}


@dataclass
class Confirmation:
    reservation: Reservation
    remaining_spots: int


class ReservationManager:
    """Serialized reserve/cancel over one request-scoped session."""

    def __init__(self, db: AsyncSession, locks: Optional[EventLockRegistry] = None):
        self.db = db
        self.ledger = CapacityLedger(db)
        self.locks = locks if locks is not None else event_locks

    async def reserve(self, event_id: int, subject: Subject) -> Confirmation:
        """
        Reserve one slot on `event_id` for `subject`.
        Raises NotFound, AlreadyReserved or EventFull.
        """
        async with self.locks.hold(event_id):
            started = time.perf_counter()
            try:
                confirmation = await self._reserve_locked(event_id, subject)
            except BookingError as exc:
                record_reservation_attempt(_ATTEMPT_OUTCOMES.get(type(exc), "error"))
                raise
            except Exception:
                record_reservation_attempt("error")
                raise
            finally:
                reservation_latency.observe(time.perf_counter() - started)

        record_reservation_attempt("confirmed")
        return confirmation

    async def cancel(self, event_id: int, subject: Subject) -> Confirmation:
        """
        Cancel the subject's active reservation on `event_id`.
        Raises NotFound or NotReserved (LedgerUnderflow on a corrupted counter).
        """
        async with self.locks.hold(event_id):
            try:
                await get_event(self.db, event_id)
                reservation = await self._active_reservation(event_id, subject.id)
                if reservation is None:
                    raise NotReserved()
                confirmation = await self._cancel_locked(reservation)
            except BookingError as exc:
                record_cancellation(_CANCEL_OUTCOMES.get(type(exc), "error"))
                raise

        record_cancellation("cancelled")
        return confirmation

    async def cancel_by_id(self, reservation_id: int, subject: Subject) -> Confirmation:
        """Cancel a reservation by id. Only its holder or an admin may do so."""
        try:
            confirmation = await self._cancel_by_id(reservation_id, subject)
        except BookingError as exc:
            record_cancellation(_CANCEL_OUTCOMES.get(type(exc), "error"))
            raise

        record_cancellation("cancelled")
        return confirmation

    async def _cancel_by_id(self, reservation_id: int, subject: Subject) -> Confirmation:
        reservation = await self._get_reservation(reservation_id)
        if reservation.user_id != subject.id and not subject.is_admin:
            raise Forbidden("You can only cancel your own reservations")

        async with self.locks.hold(reservation.event_id):
            # Re-read under the lock; it may have been cancelled meanwhile
            reservation = await self._get_reservation(reservation_id)
            if not reservation.is_active:
                raise NotReserved("Reservation is already cancelled")
            return await self._cancel_locked(reservation)

    async def _reserve_locked(self, event_id: int, subject: Subject) -> Confirmation:
        await get_event(self.db, event_id)

        if await self._active_reservation(event_id, subject.id) is not None:
            raise AlreadyReserved()

        remaining = await self.ledger.try_reserve(event_id)

        reservation = Reservation(
            event_id=event_id,
            user_id=subject.id,
            status=ReservationStatus.ACTIVE.value,
        )
        self.db.add(reservation)
        try:
            await self.db.flush()
            await self.db.refresh(reservation)
            await self.db.commit()
        except IntegrityError:
            # Another worker inserted the same active pair first
            await self.db.rollback()
            logger.info("reservation_duplicate_rolled_back", event_id=event_id, user_id=subject.id)
            raise AlreadyReserved()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                "reservation_write_failed",
                event_id=event_id,
                user_id=subject.id,
                error=str(exc),
            )
            raise

        logger.info(
            "reservation_created",
            reservation_id=reservation.id,
            event_id=event_id,
            user_id=subject.id,
            remaining=remaining,
        )
        return Confirmation(reservation=reservation, remaining_spots=remaining)

    async def _cancel_locked(self, reservation: Reservation) -> Confirmation:
        reservation.status = ReservationStatus.CANCELLED.value
        reservation.cancelled_at = datetime.now(timezone.utc)
        try:
            await self.db.flush()
            remaining = await self.ledger.release(reservation.event_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "reservation_cancelled",
            reservation_id=reservation.id,
            event_id=reservation.event_id,
            user_id=reservation.user_id,
            remaining=remaining,
        )
        return Confirmation(reservation=reservation, remaining_spots=remaining)

    async def _active_reservation(self, event_id: int, user_id: int) -> Optional[Reservation]:
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.event_id == event_id,
                Reservation.user_id == user_id,
                Reservation.status == ReservationStatus.ACTIVE.value,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_reservation(self, reservation_id: int) -> Reservation:
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound("Reservation not found")
        return reservation
