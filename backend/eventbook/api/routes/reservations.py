"""
Reservation endpoints for the caller's own reservations.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.db.session import get_db
from eventbook.schemas.reservation import (
    ReservationConfirmation,
    ReservationListResponse,
    ReservationResponse,
)
from eventbook.services import event_service
from eventbook.services.authorization import Subject, get_current_subject
from eventbook.services.cache_service import invalidate_event_cache
from eventbook.services.reservation_service import ReservationManager

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.get("/", response_model=ReservationListResponse)
async def list_my_reservations(
    active_only: bool = Query(False),
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """The caller's reservations, newest first."""
    reservations = await event_service.list_reservations_for_subject(db, subject.id, active_only)
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations]
    )


@router.delete("/{reservation_id}", response_model=ReservationConfirmation)
async def cancel_reservation_by_id(
    reservation_id: int,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a reservation by its ID. Holder or admin only."""
    confirmation = await ReservationManager(db).cancel_by_id(reservation_id, subject)
    await invalidate_event_cache()
    return ReservationConfirmation(
        message="Booking cancelled successfully",
        reservation=ReservationResponse.model_validate(confirmation.reservation),
        available_spots=confirmation.remaining_spots,
    )
