"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from eventbook.models.event import EventCategory, EventStatus

TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

SortOption = Literal["date", "popularity", "newest"]


def _pad_time(value: Optional[str]) -> Optional[str]:
    """9:5 is rejected by the pattern; 9:05 becomes 09:05 so times sort as text."""
    if value is None:
        return value
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=2000)
    date: date_type
    time: str = Field(..., pattern=TIME_PATTERN)
    venue: str = Field(..., min_length=1, max_length=255)
    category: EventCategory
    capacity: int = Field(..., gt=0, le=100000)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value):
        return _pad_time(value)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    date: Optional[date_type] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    venue: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[EventCategory] = None
    capacity: Optional[int] = Field(None, gt=0, le=100000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: Optional[EventStatus] = None

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value):
        return _pad_time(value)


class EventResponse(BaseModel):
    id: int
    title: str
    description: str
    date: date_type
    time: str
    venue: str
    category: EventCategory
    capacity: int
    reserved_count: int
    available_spots: int
    is_full: bool
    price: Decimal
    status: EventStatus
    created_by: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EventFilter(BaseModel):
    """Listing filter. Out-of-range paging values are corrected, not rejected."""

    category: Optional[EventCategory] = None
    date: Optional[date_type] = None
    search: Optional[str] = None
    upcoming_only: bool = False
    status: Optional[EventStatus] = None
    sort: SortOption = "date"
    page: Optional[int] = 1
    limit: Optional[int] = None

    @field_validator("sort", mode="before")
    @classmethod
    def default_sort(cls, value):
        return value if value in ("date", "popularity", "newest") else "date"


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class EventListResponse(BaseModel):
    success: bool = True
    events: list[EventResponse]
    pagination: Pagination
    cached: bool = False


class BookedEventsResponse(BaseModel):
    success: bool = True
    events: list[EventResponse]


class EventDetailResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    event: EventResponse


class CategoryOption(BaseModel):
    value: EventCategory
    label: str


class CategoryListResponse(BaseModel):
    success: bool = True
    categories: list[CategoryOption]
