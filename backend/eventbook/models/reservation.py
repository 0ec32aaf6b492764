"""
Reservation model: one subject's claim on one capacity slot of an event.

Key design decisions:
- Partial unique index on (event_id, user_id) WHERE status = 'active' allows
  at most one active reservation per pair while keeping cancelled rows as
  history, so reserve -> cancel -> reserve creates a fresh row
- Status is flipped to cancelled instead of deleting the row
"""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from eventbook.db.base import Base, TimestampMixin


class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


_ACTIVE_ONLY = text("status = 'active'")


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ReservationStatus.ACTIVE.value)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    event = relationship("Event", back_populates="reservations", lazy="raise")
    user = relationship("User", back_populates="reservations", lazy="raise")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'cancelled')", name="check_reservation_status"),
        Index(
            "uq_active_reservation",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
