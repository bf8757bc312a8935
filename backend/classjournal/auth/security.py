"""
ClassJournal Backend - Password & Token Service
================================================

What:  bcrypt password hashing and HS256 bearer tokens.
How:   Hashing runs in a worker thread (bcrypt is CPU-bound and would stall
       the event loop); tokens are signed with PyJWT using the shared secret
       from settings.

Token claims:
    sub    user id (UUID string)
    name   display name (may be null)
    email  login email
    role   STUDENT | TEACHER | ADMIN
    iat    issued-at (epoch seconds)
    exp    expiry (epoch seconds, JWT_EXPIRES_MINUTES after iat)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from classjournal.config import settings
from classjournal.models.user import Role, User

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, decoded from a verified token."""

    user_id: uuid.UUID
    email: str
    role: Role
    name: Optional[str] = None


def _password_bytes(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        logger.warning("Password exceeds %d bytes; truncating before hashing", BCRYPT_MAX_BYTES)
        encoded = encoded[:BCRYPT_MAX_BYTES]
    return encoded


def hash_password_sync(password: str, rounds: Optional[int] = None) -> str:
    """Salted bcrypt hash at a fixed work factor (settings.bcrypt_rounds)."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password_sync(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Stored password hash has an unrecognized format")
        return False


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(hash_password_sync, password)


async def verify_password(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password_sync, password, password_hash)


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    """Sign a token asserting the user's identity and role."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    payload: Dict[str, Any] = {
        "sub": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": Role.parse(user.role).value,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the raw claims.

    Raises:
        jwt.InvalidTokenError (including ExpiredSignatureError) on failure.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    """
    Build an Identity, normalizing the role once at this trust boundary.

    Raises:
        ValueError: missing subject/email, malformed UUID, or unknown role.
    """
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise ValueError("token is missing sub or email")
    return Identity(
        user_id=uuid.UUID(str(sub)),
        email=email,
        role=Role.parse(claims.get("role") or ""),
        name=claims.get("name"),
    )
