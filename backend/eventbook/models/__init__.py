from eventbook.models.user import User, UserRole
from eventbook.models.event import Event, EventCategory, EventStatus
from eventbook.models.reservation import Reservation, ReservationStatus

__all__ = [
    "User", "UserRole",
    "Event", "EventCategory", "EventStatus",
    "Reservation", "ReservationStatus",
]
