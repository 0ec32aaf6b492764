"""
Event endpoints: browsing, event management, and per-event reservations.
"""

from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.logging import get_logger
from eventbook.db.session import get_db
from eventbook.models.event import EventCategory, EventStatus
from eventbook.schemas.common import MessageResponse
from eventbook.schemas.event import (
    BookedEventsResponse,
    CategoryListResponse,
    EventCreate,
    EventDetailResponse,
    EventFilter,
    EventListResponse,
    EventResponse,
    EventUpdate,
    Pagination,
)
from eventbook.schemas.reservation import (
    ReservationConfirmation,
    ReservationListResponse,
    ReservationResponse,
)
from eventbook.services import event_service
from eventbook.services.authorization import (
    Subject,
    authorize_owner,
    get_current_subject,
    require_organizer,
)
from eventbook.services.cache_service import get_cached_events, invalidate_event_cache, set_cached_events
from eventbook.services.reservation_service import ReservationManager

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


def _page_response(page: event_service.EventPage) -> dict:
    return {
        "success": True,
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in page.events],
        "pagination": Pagination(
            page=page.page,
            limit=page.limit,
            total=page.total,
            pages=page.pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
        ).model_dump(),
        "cached": False,
    }


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    category: Optional[EventCategory] = Query(None),
    date: Optional[date_type] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    upcoming: bool = Query(False),
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    sort: str = Query("date"),
    page: Optional[int] = Query(1),
    limit: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with filtering and pagination.
    page < 1 and limit <= 0 fall back to defaults instead of failing.
    Results are cached in Redis until the next event or reservation change.
    """
    filters = EventFilter(
        category=category,
        date=date,
        search=search,
        upcoming_only=upcoming,
        status=event_status,
        sort=sort,
        page=page,
        limit=limit,
    )
    cache_key_params = filters.model_dump(mode="json")

    cached = await get_cached_events(cache_key_params)
    if cached:
        logger.info("events_list_cache_hit", page=filters.page)
        cached["cached"] = True
        return EventListResponse(**cached)

    result = await event_service.list_events(db, filters)
    response_data = _page_response(result)

    await set_cached_events(cache_key_params, response_data)

    return EventListResponse(**response_data)


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories_endpoint():
    return CategoryListResponse(categories=event_service.list_categories())


@router.get("/mine", response_model=EventListResponse)
async def list_my_events(
    page: Optional[int] = Query(1),
    limit: Optional[int] = Query(None),
    subject: Subject = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Events created by the calling organizer, newest first."""
    result = await event_service.list_events_by_owner(db, subject.id, page, limit)
    return EventListResponse(**_page_response(result))


@router.get("/booked", response_model=BookedEventsResponse)
async def list_booked_events(
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Events the caller currently holds a reservation on."""
    events = await event_service.list_events_for_subject(db, subject.id)
    return BookedEventsResponse(events=[EventResponse.model_validate(e) for e in events])


@router.post("/", response_model=EventDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    subject: Subject = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Organizers and admins only."""
    event = await event_service.create_event(db, event_data, subject)
    await invalidate_event_cache()
    return EventDetailResponse(
        message="Event created successfully", event=EventResponse.model_validate(event)
    )


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event_endpoint(
    event_id: int,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (shows live spot counts)."""
    event = await event_service.get_event(db, event_id)
    return EventDetailResponse(event=EventResponse.model_validate(event))


@router.put("/{event_id}", response_model=EventDetailResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Update an event. Owner or admin only."""
    event = await event_service.update_event(db, event_id, event_data, subject)
    await invalidate_event_cache()
    return EventDetailResponse(
        message="Event updated successfully", event=EventResponse.model_validate(event)
    )


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event_endpoint(
    event_id: int,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event. Owner or admin only, subject to the delete policy."""
    await event_service.delete_event(db, event_id, subject)
    await invalidate_event_cache()
    return MessageResponse(message="Event deleted successfully")


@router.post(
    "/{event_id}/reservation",
    response_model=ReservationConfirmation,
    status_code=status.HTTP_201_CREATED,
)
async def reserve_endpoint(
    event_id: int,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Reserve one slot on the event for the caller."""
    confirmation = await ReservationManager(db).reserve(event_id, subject)
    await invalidate_event_cache()
    return ReservationConfirmation(
        message="Event booked successfully",
        reservation=ReservationResponse.model_validate(confirmation.reservation),
        available_spots=confirmation.remaining_spots,
    )


@router.delete("/{event_id}/reservation", response_model=ReservationConfirmation)
async def cancel_reservation_endpoint(
    event_id: int,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the caller's reservation on the event."""
    confirmation = await ReservationManager(db).cancel(event_id, subject)
    await invalidate_event_cache()
    return ReservationConfirmation(
        message="Booking cancelled successfully",
        reservation=ReservationResponse.model_validate(confirmation.reservation),
        available_spots=confirmation.remaining_spots,
    )


@router.get("/{event_id}/reservations", response_model=ReservationListResponse)
async def list_event_reservations(
    event_id: int,
    active_only: bool = Query(True),
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Reservations on an event. Owner or admin only."""
    event = await event_service.get_event(db, event_id)
    authorize_owner(subject, event.created_by)
    reservations = await event_service.list_reservations_for_event(db, event_id, active_only)
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations]
    )
