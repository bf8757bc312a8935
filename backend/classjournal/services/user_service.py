"""
ClassJournal Backend - User Service
====================================

What:  Registration, login, and user lookup.
How:   Passwords are hashed with bcrypt off the event loop; the email
       uniqueness constraint is enforced by the database and a pre-check.
Who:   /api/user routes, the role guard, and feed dispatch.

Error Handling:
    Duplicate email      → ConflictError ("User already exists", 400)
    Unknown role         → ValidationError (400)
    Unknown email        → InvalidCredentialsError ("User not found", 400)
    Wrong password       → InvalidCredentialsError ("Invalid password", 400)
    Any other DB failure → DatabaseError (500, driver message logged only)
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth import security
from classjournal.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from classjournal.models.user import Role, User
from classjournal.schemas.user import UserPublic

logger = logging.getLogger(__name__)


def parse_role(value: Optional[str]) -> Role:
    """Absent or blank → STUDENT; otherwise a case-insensitive Role lookup."""
    if value is None or not str(value).strip():
        return Role.STUDENT
    try:
        return Role.parse(value)
    except ValueError:
        raise ValidationError(
            message=(
                f"Invalid role '{value}'. "
                f"Must be one of: {', '.join(r.value.lower() for r in Role)}"
            ),
            field="role",
        )


class UserService:
    """Stateless user operations; the session is passed to every call."""

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user by email: %s", str(e))
            raise DatabaseError(context={"operation": "find_by_email"})

    async def find_user(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        try:
            return await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(context={"operation": "find_user", "user_id": str(user_id)})

    async def get_user(self, db: AsyncSession, user_id: UUID) -> User:
        """Like `find_user`, but a missing user is a NotFoundError."""
        user = await self.find_user(db, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> UserPublic:
        """
        Create a user with a hashed password.

        The pre-check gives the common duplicate case a clean error; two
        concurrent registrations of the same email are still resolved by
        the unique constraint, which surfaces here as IntegrityError.
        """
        parsed_role = parse_role(role)

        if await self.find_by_email(db, email) is not None:
            raise ConflictError("User already exists", context={"email": email})

        password_hash = await security.hash_password(password)
        user = User(name=name, email=email, password=password_hash, role=parsed_role)

        try:
            db.add(user)
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.info("Concurrent registration lost the race for %s", email)
            raise ConflictError("User already exists", context={"email": email})
        except SQLAlchemyError as e:
            logger.error("Database error registering %s: %s", email, str(e))
            raise DatabaseError(context={"operation": "register"})

        logger.info("Registered user %s with role %s", user.id, user.role.value)
        return UserPublic.model_validate(user)

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
    ) -> Tuple[UserPublic, str]:
        """Verify credentials and return the user projection with a fresh token."""
        user = await self.find_by_email(db, email)
        if user is None:
            raise InvalidCredentialsError("User not found")

        if not await security.verify_password(password, user.password):
            logger.info("Failed login for user %s", user.id)
            raise InvalidCredentialsError("Invalid password")

        token = security.create_access_token(user)
        logger.info("User %s logged in", user.id)
        return UserPublic.model_validate(user), token


user_service = UserService()
