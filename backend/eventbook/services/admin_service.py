"""
Administrative operations: user management, global reservation view,
and ledger reconciliation.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.logging import get_logger
from eventbook.models.event import Event
from eventbook.models.reservation import Reservation
from eventbook.models.user import User, UserRole
from eventbook.services.auth_service import get_user
from eventbook.services.ledger_service import CapacityLedger

logger = get_logger(__name__)


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id.asc()))
    return list(result.scalars().all())


async def set_user_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
    """Change a user's role. Takes effect on the user's next login."""
    user = await get_user(db, user_id)
    previous = user.role
    user.role = role
    await db.flush()
    await db.refresh(user)

    logger.info("user_role_changed", user_id=user_id, previous=previous.value, role=role.value)
    return user


async def list_all_reservations(db: AsyncSession) -> list[dict]:
    """Every reservation with its event title and holder email, newest first."""
    result = await db.execute(
        select(Reservation, Event.title, User.email)
        .join(Event, Event.id == Reservation.event_id)
        .join(User, User.id == Reservation.user_id)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    return [
        {
            "id": reservation.id,
            "event_id": reservation.event_id,
            "user_id": reservation.user_id,
            "status": reservation.status,
            "created_at": reservation.created_at,
            "cancelled_at": reservation.cancelled_at,
            "event_title": title,
            "user_email": email,
        }
        for reservation, title, email in result.all()
    ]


async def reconcile_ledger(db: AsyncSession) -> tuple[int, list[dict]]:
    """Recompute every event's reserved count from its active reservations."""
    checked, corrections = await CapacityLedger(db).reconcile()
    await db.commit()
    logger.info("ledger_reconciled", events_checked=checked, corrections=len(corrections))
    return checked, corrections
