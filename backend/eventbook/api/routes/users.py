"""
Profile endpoints for the authenticated user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.db.session import get_db
from eventbook.schemas.user import ProfileResponse, ProfileUpdate, UserResponse
from eventbook.services.auth_service import get_user, update_profile
from eventbook.services.authorization import Subject, get_current_subject

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def read_profile(
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    user = await get_user(db, subject.id)
    return ProfileResponse(user=UserResponse.model_validate(user))


@router.put("/me", response_model=ProfileResponse)
async def edit_profile(
    changes: ProfileUpdate,
    subject: Subject = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """Update name, email, phone, or password (password needs current_password)."""
    user = await update_profile(db, subject.id, changes)
    return ProfileResponse(message="Profile updated successfully", user=UserResponse.model_validate(user))
