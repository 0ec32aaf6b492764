"""
Event service: event lookup/listing, reservation listings, and event writes.

Reads here are for display. `reserved_count` values returned from these
queries must never be used to decide whether a reservation can succeed;
that decision belongs to the capacity ledger.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.config import get_settings
from eventbook.core.errors import Conflict, InvalidRequest, NotFound
from eventbook.core.logging import get_logger
from eventbook.models.event import CATEGORY_LABELS, Event, EventCategory
from eventbook.models.reservation import Reservation, ReservationStatus
from eventbook.schemas.event import EventCreate, EventFilter, EventUpdate
from eventbook.services.authorization import Subject, authorize_owner
from eventbook.services.locks import event_locks

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class EventPage:
    events: list[Event]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def normalize_paging(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    """Correct out-of-range paging values instead of rejecting them."""
    if page is None or page < 1:
        page = 1
    if limit is None or limit <= 0:
        limit = settings.DEFAULT_PAGE_SIZE
    return page, min(limit, settings.MAX_PAGE_SIZE)


def _today():
    return datetime.now(timezone.utc).date()


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_SORT_ORDERS = {
    "date": (Event.date.asc(), Event.time.asc(), Event.id.asc()),
    "popularity": (Event.reserved_count.desc(), Event.date.asc(), Event.id.asc()),
    "newest": (Event.created_at.desc(), Event.id.desc()),
}


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFound("Event not found")
    return event


async def list_events(db: AsyncSession, filters: EventFilter) -> EventPage:
    """
    List events matching `filters`, paginated.
    Default order is by date ascending; the date filter matches one calendar day.
    """
    page, limit = normalize_paging(filters.page, filters.limit)
    query = select(Event)

    if filters.category is not None:
        query = query.where(Event.category == filters.category)
    if filters.status is not None:
        query = query.where(Event.status == filters.status)
    if filters.date is not None:
        query = query.where(Event.date == filters.date)
    if filters.upcoming_only:
        query = query.where(Event.date >= _today())
    if filters.search and filters.search.strip():
        pattern = f"%{_escape_like(filters.search.strip())}%"
        query = query.where(
            or_(
                Event.title.ilike(pattern, escape="\\"),
                Event.description.ilike(pattern, escape="\\"),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(*_SORT_ORDERS[filters.sort])
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return EventPage(events=events, total=total, page=page, limit=limit)


async def list_events_by_owner(
    db: AsyncSession,
    owner_id: int,
    page: Optional[int] = 1,
    limit: Optional[int] = None,
) -> EventPage:
    """Events created by `owner_id`, newest first."""
    page, limit = normalize_paging(page, limit)
    query = select(Event).where(Event.created_by == owner_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Event.created_at.desc(), Event.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    return EventPage(events=list(result.scalars().all()), total=total, page=page, limit=limit)


async def list_events_for_subject(db: AsyncSession, user_id: int) -> list[Event]:
    """Events the user currently holds an active reservation on, by date."""
    result = await db.execute(
        select(Event)
        .join(Reservation, Reservation.event_id == Event.id)
        .where(
            Reservation.user_id == user_id,
            Reservation.status == ReservationStatus.ACTIVE.value,
        )
        .order_by(Event.date.asc(), Event.time.asc())
    )
    return list(result.scalars().all())


async def list_reservations_for_subject(
    db: AsyncSession,
    user_id: int,
    active_only: bool = False,
) -> list[Reservation]:
    query = select(Reservation).where(Reservation.user_id == user_id)
    if active_only:
        query = query.where(Reservation.status == ReservationStatus.ACTIVE.value)
    result = await db.execute(query.order_by(Reservation.created_at.desc(), Reservation.id.desc()))
    return list(result.scalars().all())


async def list_reservations_for_event(
    db: AsyncSession,
    event_id: int,
    active_only: bool = True,
) -> list[Reservation]:
    query = select(Reservation).where(Reservation.event_id == event_id)
    if active_only:
        query = query.where(Reservation.status == ReservationStatus.ACTIVE.value)
    result = await db.execute(query.order_by(Reservation.created_at.asc(), Reservation.id.asc()))
    return list(result.scalars().all())


def list_categories() -> list[dict]:
    return [{"value": category, "label": CATEGORY_LABELS[category]} for category in EventCategory]


async def create_event(db: AsyncSession, event_data: EventCreate, subject: Subject) -> Event:
    """Create a new event with every slot free."""
    if event_data.date < _today():
        raise InvalidRequest("Event date cannot be in the past")

    event = Event(
        **event_data.model_dump(),
        reserved_count=0,
        created_by=subject.id,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def update_event(
    db: AsyncSession,
    event_id: int,
    event_data: EventUpdate,
    subject: Subject,
) -> Event:
    """
    Apply a partial update as the owner or an admin.
    Lowering capacity below the current reserved count is a Conflict; the
    check and the write are one conditional UPDATE.
    """
    event = await get_event(db, event_id)
    authorize_owner(subject, event.created_by)

    changes = event_data.model_dump(exclude_unset=True, exclude_none=True)
    if "date" in changes and changes["date"] < _today():
        raise InvalidRequest("Event date cannot be in the past")

    new_capacity = changes.pop("capacity", None)

    if new_capacity is not None and new_capacity != event.capacity:
        result = await db.execute(
            update(Event)
            .where(Event.id == event_id, Event.reserved_count <= new_capacity)
            .values(capacity=new_capacity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.refresh(event)
            logger.warning(
                "capacity_reduction_rejected",
                event_id=event_id,
                requested=new_capacity,
                reserved=event.reserved_count,
            )
            raise Conflict(
                f"Capacity cannot be lower than the {event.reserved_count} spots already reserved"
            )

    for field, value in changes.items():
        setattr(event, field, value)

    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event_id, fields=sorted(event_data.model_fields_set))
    return event


async def delete_event(db: AsyncSession, event_id: int, subject: Subject) -> None:
    """
    Delete an event as the owner or an admin, following EVENT_DELETE_POLICY.

    block:   the DELETE itself is guarded by reserved_count = 0, so a
             reservation committed concurrently makes it a Conflict.
    cascade: the event's reservations are removed with it.
    """
    async with event_locks.hold(event_id):
        event = await get_event(db, event_id)
        authorize_owner(subject, event.created_by)

        if settings.EVENT_DELETE_POLICY == "cascade":
            active = (
                await db.execute(
                    select(func.count(Reservation.id)).where(
                        Reservation.event_id == event_id,
                        Reservation.status == ReservationStatus.ACTIVE.value,
                    )
                )
            ).scalar()
            await db.execute(delete(Reservation).where(Reservation.event_id == event_id))
            await db.execute(
                delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False)
            )
            logger.info("event_deleted", event_id=event_id, policy="cascade", reservations_cancelled=active)
        else:
            result = await db.execute(
                delete(Event)
                .where(Event.id == event_id, Event.reserved_count == 0)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise Conflict("Cannot delete an event with active reservations")
            # Cancelled history rows
            await db.execute(delete(Reservation).where(Reservation.event_id == event_id))
            logger.info("event_deleted", event_id=event_id, policy="block")

        await db.commit()
