"""
Admin endpoints: user roles, the global reservation view, ledger repair.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.db.session import get_db
from eventbook.schemas.reservation import (
    AdminReservationListResponse,
    AdminReservationResponse,
    LedgerCorrection,
    ReconcileResponse,
)
from eventbook.schemas.user import ProfileResponse, RoleUpdate, UserListResponse, UserResponse
from eventbook.services import admin_service
from eventbook.services.authorization import Subject, require_admin
from eventbook.services.cache_service import invalidate_event_cache

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    subject: Subject = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await admin_service.list_users(db)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])


@router.put("/users/{user_id}/role", response_model=ProfileResponse)
async def change_user_role(
    user_id: int,
    body: RoleUpdate,
    subject: Subject = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Change a user's role. The user must log in again to use it."""
    user = await admin_service.set_user_role(db, user_id, body.role)
    return ProfileResponse(message="Role updated successfully", user=UserResponse.model_validate(user))


@router.get("/reservations", response_model=AdminReservationListResponse)
async def list_all_reservations(
    subject: Subject = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await admin_service.list_all_reservations(db)
    return AdminReservationListResponse(
        reservations=[AdminReservationResponse(**row) for row in rows]
    )


@router.post("/ledger/reconcile", response_model=ReconcileResponse)
async def reconcile_ledger(
    subject: Subject = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Recompute every event's reserved count from its active reservations."""
    checked, corrections = await admin_service.reconcile_ledger(db)
    if corrections:
        await invalidate_event_cache()
    return ReconcileResponse(
        events_checked=checked,
        corrections=[LedgerCorrection(**c) for c in corrections],
    )
