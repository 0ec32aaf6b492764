"""
Event model with its capacity ledger counter.

Key design decisions:
- `reserved_count` is the capacity ledger for the event. It is only written
  through the conditional UPDATEs in services/ledger_service.py and can be
  recomputed from the active reservations at any time.
- CHECK constraints keep 0 <= reserved_count <= capacity at the DB level
- Index on `date` for upcoming/date filters, composite (category, date) for
  the category listing
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class EventCategory(str, enum.Enum):
    CONFERENCE = "conference"
    WORKSHOP = "workshop"
    SEMINAR = "seminar"
    PARTY = "party"


CATEGORY_LABELS = {
    EventCategory.CONFERENCE: "Conference",
    EventCategory.WORKSHOP: "Workshop",
    EventCategory.SEMINAR: "Seminar",
    EventCategory.PARTY: "Party",
}


class EventStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    venue = Column(String(255), nullable=False)
    category = Column(
        Enum(EventCategory, name="event_category", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    capacity = Column(Integer, nullable=False)
    reserved_count = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(
        Enum(EventStatus, name="event_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=EventStatus.UPCOMING,
    )
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    creator = relationship("User", back_populates="events", lazy="raise")
    reservations = relationship(
        "Reservation",
        back_populates="event",
        lazy="raise",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_capacity_positive"),
        CheckConstraint("reserved_count >= 0", name="check_reserved_non_negative"),
        CheckConstraint("reserved_count <= capacity", name="check_reserved_lte_capacity"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index("ix_events_date", "date"),
        Index("ix_events_category_date", "category", "date"),
    )

    @property
    def available_spots(self) -> int:
        return self.capacity - self.reserved_count

    @property
    def is_full(self) -> bool:
        return self.available_spots <= 0

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, reserved={self.reserved_count}/{self.capacity})>"
