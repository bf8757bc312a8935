"""
ClassJournal Backend - Authentication & Role Dependencies
==========================================================

What:  FastAPI dependencies that authenticate the bearer token and enforce
       role requirements on routes.
How:   `get_current_identity` verifies the token and attaches an `Identity`
       to `request.state`. `require_roles(...)` builds a dependency that
       re-reads the caller from the database and checks the stored role.
Who:   Every route under /api/user (feeds) and /api/journal.

Because these run as dependencies, a request without a valid token is
rejected before any handler code or body parsing side effects run.
"""

import logging
from typing import Callable, Iterable, Optional, Tuple

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.security import Identity, decode_access_token, identity_from_claims
from classjournal.database import get_db_session
from classjournal.exceptions import AuthenticationError, AuthorizationError
from classjournal.models.user import Role, User
from classjournal.services.user_service import user_service

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Identity:
    """Authenticate the request from its `Authorization: Bearer` header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Unauthorized - No token provided")

    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise AuthenticationError("Invalid Token", context={"reason": "expired"})
    except jwt.InvalidTokenError as e:
        logger.info("Rejected invalid token: %s", str(e))
        raise AuthenticationError("Invalid Token")

    try:
        identity = identity_from_claims(claims)
    except ValueError as e:
        logger.info("Rejected token with unusable claims: %s", str(e))
        raise AuthenticationError("Invalid Token")

    request.state.identity = identity
    return identity


def _normalize_roles(roles: Iterable[str]) -> Tuple[Role, ...]:
    return tuple(Role.parse(r) for r in roles)


def require_roles(*roles: str) -> Callable:
    """
    Build a dependency admitting only users whose stored role is in `roles`.

    Role names are case-insensitive. The token's role claim is not trusted
    for the decision: the user row is loaded and its current role checked.

    Usage:
        @router.post("/create")
        async def create(teacher: User = Depends(require_roles("teacher"))): ...
    """
    allowed = _normalize_roles(roles)
    allowed_names = [r.value for r in allowed]

    async def guard(
        identity: Identity = Depends(get_current_identity),
        db: AsyncSession = Depends(get_db_session),
    ) -> User:
        user = await user_service.find_user(db, identity.user_id)
        if user is None:
            raise AuthenticationError("User not authenticated")

        if user.role not in allowed:
            logger.info(
                "Denied user %s with role %s (requires %s)",
                user.id,
                user.role.value,
                " or ".join(allowed_names),
            )
            raise AuthorizationError(allowed_names, user_role=user.role.value)
        return user

    return guard
