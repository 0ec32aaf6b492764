"""
Authorization gate: bearer credential -> Subject, and role/ownership checks.

Every route that needs an identity goes through `get_current_subject`;
role-gated routes add `require_roles(...)`; ownership-gated operations call
`authorize_owner` once the resource has been loaded.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventbook.core.errors import Forbidden, Unauthenticated
from eventbook.core.logging import get_logger
from eventbook.core.security import create_access_token, decode_access_token
from eventbook.models.user import UserRole

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Subject:
    """Validated identity of the caller."""

    id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def issue_token(user_id: int, role: UserRole) -> str:
    return create_access_token(data={"sub": str(user_id), "role": UserRole(role).value})


def authenticate(credential: Optional[str]) -> Subject:
    """Validate a bearer token. Raises Unauthenticated on any defect."""
    if not credential:
        raise Unauthenticated()

    try:
        payload = decode_access_token(credential)
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid authentication token")

    try:
        subject = Subject(id=int(payload["sub"]), role=UserRole(payload.get("role")))
    except (TypeError, ValueError):
        logger.warning("token_claims_invalid", sub=payload.get("sub"), role=payload.get("role"))
        raise Unauthenticated("Invalid authentication token")

    return subject


def authorize(subject: Subject, roles: Iterable[UserRole]) -> Subject:
    allowed = set(roles)
    if subject.role not in allowed:
        logger.info(
            "authorization_denied",
            subject_id=subject.id,
            role=subject.role.value,
            required=sorted(r.value for r in allowed),
        )
        raise Forbidden()
    return subject


def authorize_owner(subject: Subject, owner_id: int) -> Subject:
    """Allow the resource owner or an admin."""
    if subject.is_admin or subject.id == owner_id:
        return subject
    logger.info("ownership_denied", subject_id=subject.id, owner_id=owner_id)
    raise Forbidden("You can only manage your own resources")


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Subject:
    return authenticate(credentials.credentials if credentials else None)


def require_roles(*roles: UserRole):
    """Dependency factory: authenticated subject whose role is in `roles`."""

    async def dependency(subject: Subject = Depends(get_current_subject)) -> Subject:
        return authorize(subject, roles)

    return dependency


require_organizer = require_roles(UserRole.ORGANIZER, UserRole.ADMIN)
require_admin = require_roles(UserRole.ADMIN)
