"""
ClassJournal Backend - Journal SQLAlchemy Model
================================================

What:  ORM model for the `journals` table, the `journal_tagged_students`
       junction, and the `MediaType` enumeration.
Who:   JournalService for every CRUD, publish, and feed query.

Table Design:
    - teacher_id: required owner, ON DELETE CASCADE from users
    - media: ordered list of media URLs (TEXT[] on PostgreSQL, JSON on SQLite)
    - publish_at: defaults to CURRENT_TIMESTAMP at insert; the PostgreSQL
      set_publish_at trigger also replaces an explicit NULL
    - updated_at: refreshed by the ORM on flush and by a trigger on PostgreSQL
    - tagged students: symmetric many-to-many; junction rows cascade with
      either side

Relationships load with `selectin` so serializing a journal never triggers
lazy IO on the async session.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    ARRAY,
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Table,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from classjournal.database import Base
from classjournal.models.user import User
from classjournal.utils.timestamps import utcnow


class MediaType(str, enum.Enum):
    """Kinds of media a journal can carry."""

    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    PDF = "PDF"

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        """Case-insensitive lookup; raises ValueError for unknown types."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())


journal_tagged_students = Table(
    "journal_tagged_students",
    Base.metadata,
    Column(
        "journal_id",
        Uuid(as_uuid=True),
        ForeignKey("journals.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "student_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("idx_tagged_students_journal_id", "journal_id"),
    Index("idx_tagged_students_student_id", "student_id"),
)


class Journal(Base):
    """A teacher-authored post, visible to tagged students once published."""

    __tablename__ = "journals"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    media: Mapped[List[str]] = mapped_column(
        ARRAY(Text).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=list,
    )

    media_type: Mapped[Optional[MediaType]] = mapped_column(
        Enum(MediaType, name="media_type"),
        nullable=True,
    )

    teacher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    publish_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        server_default=func.now(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    teacher: Mapped[User] = relationship(User, lazy="selectin")

    tagged_students: Mapped[List[User]] = relationship(
        User,
        secondary=journal_tagged_students,
        lazy="selectin",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_journals_teacher_id", "teacher_id"),
        Index("idx_journals_created_at", "created_at"),
    )

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return (
            f"<Journal(id={self.id}, title='{self.title}', "
            f"publish_at='{self.publish_at}')>"
        )
