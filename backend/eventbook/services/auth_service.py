"""
Account service: registration, login, and profile management.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.errors import Conflict, Forbidden, InvalidRequest, NotFound, Unauthenticated
from eventbook.core.logging import get_logger
from eventbook.core.security import hash_password, verify_password
from eventbook.models.user import User, UserRole
from eventbook.schemas.user import ProfileUpdate, UserCreate, UserLogin
from eventbook.services.authorization import issue_token

logger = get_logger(__name__)


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.scalar_one_or_none() is not None


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with role `user` and a hashed password.
    Raises Conflict if the email is already registered.
    """
    email = user_data.email.lower()
    if await _email_taken(db, email):
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise Conflict("Email already registered")

    user = User(
        name=user_data.name,
        email=email,
        phone=user_data.phone,
        hashed_password=hash_password(user_data.password),
        role=UserRole.USER,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> tuple[str, User]:
    """
    Check credentials and return (access token, user).
    Raises Unauthenticated if they are invalid, Forbidden if the account is deactivated.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    token = issue_token(user.id, user.role)
    logger.info("user_logged_in", user_id=user.id)
    return token, user


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound("User not found")
    return user


async def update_profile(db: AsyncSession, user_id: int, changes: ProfileUpdate) -> User:
    """
    Update name/email/phone, and the password when the current one is proven.
    """
    user = await get_user(db, user_id)

    if changes.new_password is not None:
        if not verify_password(changes.current_password, user.hashed_password):
            logger.warning("password_change_rejected", user_id=user_id)
            raise InvalidRequest("Current password is incorrect")
        user.hashed_password = hash_password(changes.new_password)

    if changes.email is not None:
        email = changes.email.lower()
        if email != user.email:
            if await _email_taken(db, email):
                raise Conflict("Email already registered")
            user.email = email

    if changes.name is not None:
        user.name = changes.name
    if changes.phone is not None:
        user.phone = changes.phone

    await db.flush()
    await db.refresh(user)

    logger.info(
        "profile_updated",
        user_id=user_id,
        password_changed=changes.new_password is not None,
    )
    return user
