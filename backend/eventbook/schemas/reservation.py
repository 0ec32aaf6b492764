"""
Pydantic schemas for reservation responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from eventbook.models.reservation import ReservationStatus


class ReservationResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: ReservationStatus
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReservationConfirmation(BaseModel):
    success: bool = True
    message: str
    reservation: ReservationResponse
    available_spots: int


class ReservationListResponse(BaseModel):
    success: bool = True
    reservations: list[ReservationResponse]


class AdminReservationResponse(ReservationResponse):
    event_title: str
    user_email: str


class AdminReservationListResponse(BaseModel):
    success: bool = True
    reservations: list[AdminReservationResponse]


class LedgerCorrection(BaseModel):
    event_id: int
    recorded: int
    actual: int


class ReconcileResponse(BaseModel):
    success: bool = True
    events_checked: int
    corrections: list[LedgerCorrection]
