"""
Capacity ledger: the per-event reserved-slot counter.

CONCURRENCY STRATEGY: Atomic conditional UPDATE
===============================================

Problem:
  Two users try to book the last slot simultaneously.
  Both read reserved_count=capacity-1, both append, both save.
  Result: Overbooking.

Solution:
  The read-compare-increment happens inside one statement:

    UPDATE events SET reserved_count = reserved_count + 1
    WHERE id = :event_id AND reserved_count < capacity

  If rows_affected == 0 the event is full (or gone). The row lock taken by
  the UPDATE is held until the surrounding transaction ends, so a concurrent
  caller on another worker blocks and then re-evaluates the guard against
  the committed value.

  Release is the mirror image guarded by reserved_count > 0. A release that
  matches no row on an existing event is an underflow and is raised, never
  clamped.

  The counter is derivable from the reservations table: `reconcile`
  recomputes it from the active reservation set after a crash.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.errors import EventFull, LedgerUnderflow, NotFound
from eventbook.core.logging import get_logger
from eventbook.core.metrics import ledger_corrections, ledger_underflows
from eventbook.models.event import Event
from eventbook.models.reservation import Reservation, ReservationStatus

logger = get_logger(__name__)


class CapacityLedger:
    """Reads and atomically updates `events.reserved_count` within a session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def remaining(self, event_id: int) -> int:
        """Fresh read of the free slots for an event."""
        row = (
            await self.db.execute(
                select(Event.capacity, Event.reserved_count).where(Event.id == event_id)
            )
        ).first()
        if row is None:
            raise NotFound("Event not found")
        return row.capacity - row.reserved_count

    async def try_reserve(self, event_id: int) -> int:
        """
        Take one slot. Returns the remaining free slots.
        Raises EventFull when no slot is left.
        """
        result = await self.db.execute(
            update(Event)
            .where(Event.id == event_id, Event.reserved_count < Event.capacity)
            .values(reserved_count=Event.reserved_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Distinguish "full" from "deleted under us"
            remaining = await self.remaining(event_id)
            logger.info("ledger_reserve_rejected", event_id=event_id, remaining=remaining)
            raise EventFull()

        return await self.remaining(event_id)

    async def release(self, event_id: int) -> int:
        """
        Give one slot back. Returns the remaining free slots.
        Raises LedgerUnderflow if the counter is already zero.
        """
        result = await self.db.execute(
            update(Event)
            .where(Event.id == event_id, Event.reserved_count > 0)
            .values(reserved_count=Event.reserved_count - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.remaining(event_id)  # NotFound if the event is gone
            ledger_underflows.inc()
            raise LedgerUnderflow(event_id)

        return await self.remaining(event_id)

    async def reconcile(self, event_id: Optional[int] = None) -> tuple[int, list[dict]]:
        """
        Recompute reserved_count from active reservations.

        Idempotent: running it twice in a row yields no corrections the
        second time. Returns (events_checked, corrections).
        """
        active_counts = (
            select(
                Reservation.event_id.label("event_id"),
                func.count(Reservation.id).label("active"),
            )
            .where(Reservation.status == ReservationStatus.ACTIVE.value)
            .group_by(Reservation.event_id)
            .subquery()
        )
        query = (
            select(
                Event.id,
                Event.capacity,
                Event.reserved_count,
                func.coalesce(active_counts.c.active, 0).label("active"),
            )
            .outerjoin(active_counts, active_counts.c.event_id == Event.id)
            .order_by(Event.id)
        )
        if event_id is not None:
            query = query.where(Event.id == event_id)

        rows = (await self.db.execute(query)).all()
        corrections = []
        for row in rows:
            if row.reserved_count == row.active:
                continue
            if row.active > row.capacity:
                # Not representable under the CHECK constraints; needs an operator
                logger.error(
                    "ledger_over_capacity",
                    event_id=row.id,
                    capacity=row.capacity,
                    active=row.active,
                )
                continue
            # Skip the row if a reservation moved the counter since it was read
            result = await self.db.execute(
                update(Event)
                .where(Event.id == row.id, Event.reserved_count == row.reserved_count)
                .values(reserved_count=row.active)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                continue
            ledger_corrections.inc()
            logger.warning(
                "ledger_drift_corrected",
                event_id=row.id,
                recorded=row.reserved_count,
                actual=row.active,
            )
            corrections.append(
                {"event_id": row.id, "recorded": row.reserved_count, "actual": row.active}
            )

        return len(rows), corrections
