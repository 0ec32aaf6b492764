from eventbook.schemas.user import (
    UserCreate, UserResponse, UserLogin, Token, LoginResponse, ProfileUpdate, ProfileResponse, RoleUpdate,
    UserListResponse,
)
from eventbook.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventFilter, EventListResponse, EventDetailResponse,
    BookedEventsResponse,
)
from eventbook.schemas.reservation import (
    ReservationResponse, ReservationConfirmation, ReservationListResponse, ReconcileResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token", "LoginResponse",
    "ProfileUpdate", "ProfileResponse", "RoleUpdate", "UserListResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventFilter",
    "EventListResponse", "EventDetailResponse", "BookedEventsResponse",
    "ReservationResponse", "ReservationConfirmation", "ReservationListResponse", "ReconcileResponse",
]
