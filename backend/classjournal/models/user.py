"""
ClassJournal Backend - User SQLAlchemy Model
=============================================

What:  ORM model for the `users` table plus the `Role` enumeration.
Who:   UserService (register/login), the role guard, and JournalService
       (teacher ownership, student tagging).

Table Design:
    - UUID primary key: opaque identifier carried in the token `sub` claim
    - email: unique at the store level; the register pre-check is advisory
    - password: bcrypt hash only, never serialized by any response schema
    - role: native enum on PostgreSQL, VARCHAR + CHECK on SQLite
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from classjournal.database import Base
from classjournal.utils.timestamps import utcnow


class Role(str, enum.Enum):
    """User roles. Values are always upper case."""

    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Case-insensitive lookup; raises ValueError for unknown roles."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())


class User(Base):
    """A registered student, teacher, or administrator."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        nullable=False,
        index=True,
    )

    password: Mapped[str] = mapped_column(Text, nullable=False)

    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role"),
        nullable=False,
        default=Role.STUDENT,
        server_default=Role.STUDENT.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # PostgreSQL also refreshes this through the update_users_updated_at trigger
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
