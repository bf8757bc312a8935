"""
ClassJournal Backend - Journal Service (Business Logic)
========================================================

What:  Journal CRUD, scheduled publication, and the teacher/student feeds.
How:   Stateless service; every method receives the request's AsyncSession
       and only flushes. The session dependency commits, so a journal and
       its tagged-student rows are written together or not at all.
Who:   /api/journal routes and the feed routes under /api/user.

Visibility Rule (student feed):
    A journal reaches a student when the student is tagged on it AND
    `publish_at IS NULL OR publish_at <= now()`, with now() taken from the
    database clock. Scheduling in the future hides a journal until then.

Update Rule:
    A field that is omitted (None) is left unchanged. A supplied tag list
    replaces the current set; an explicit empty list clears it.
"""

import json
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.exceptions import ClassJournalError, DatabaseError, NotFoundError, ValidationError
from classjournal.models.journal import Journal, MediaType, journal_tagged_students
from classjournal.models.user import Role, User
from classjournal.schemas.journal import JournalResponse
from classjournal.services.user_service import user_service
from classjournal.utils.timestamps import parse_strict_iso

logger = logging.getLogger(__name__)

INVALID_PUBLISH_AT = "Invalid publish_at date format. Must be ISO 8601"
INVALID_FEED_ROLE = "Invalid user role. Must be either 'teacher' or 'student'"


# ══════════════════════════════════════════════════════════════════════════
# Input normalization
# ══════════════════════════════════════════════════════════════════════════

def _to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(
            message=f"Invalid student id '{value}'",
            field="taggedStudents",
        )


def _decode_json_list(raw: str) -> List[Any]:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError(
            message="taggedStudents must be a JSON array of student ids",
            field="taggedStudents",
        )
    if not isinstance(decoded, list):
        raise ValidationError(
            message="taggedStudents must be a JSON array of student ids",
            field="taggedStudents",
        )
    return decoded


def parse_tagged_students(value: Any) -> Optional[List[UUID]]:
    """
    Normalize the tag input into a de-duplicated list of UUIDs.

    Accepted shapes:
        None                        → None (field omitted)
        ["id1", "id2"]              → both ids
        '["id1", "id2"]'            → JSON-encoded list (multipart forms)
        ['["id1", "id2"]']          → a form list holding one JSON string
        "" / "[]"                   → [] (explicitly no tags)
    A bare string that is not JSON is taken as a single id.
    """
    if value is None:
        return None

    items: List[Any]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        items = _decode_json_list(raw) if raw.startswith("[") else [raw]
    elif isinstance(value, (list, tuple)):
        items = []
        for entry in value:
            if isinstance(entry, str) and entry.strip().startswith("["):
                items.extend(_decode_json_list(entry.strip()))
            elif isinstance(entry, str) and not entry.strip():
                continue
            else:
                items.append(entry)
    else:
        raise ValidationError(
            message="taggedStudents must be a list of student ids",
            field="taggedStudents",
        )

    ids: List[UUID] = []
    for item in items:
        uid = _to_uuid(item)
        if uid not in ids:
            ids.append(uid)
    return ids


def parse_media_type(value: Optional[str]) -> Optional[MediaType]:
    if value is None or not str(value).strip():
        return None
    try:
        return MediaType.parse(value)
    except ValueError:
        raise ValidationError(
            message=(
                f"Invalid mediaType '{value}'. "
                f"Must be one of: {', '.join(m.value for m in MediaType)}"
            ),
            field="mediaType",
        )


def parse_publish_at(value: Optional[str]) -> Optional[datetime]:
    """
    Strict `YYYY-MM-DDTHH:MM:SS.sssZ` parsing. None or "" means omitted.

    Raises:
        ValidationError with the fixed publish_at message for anything else.
    """
    if value is None or value == "":
        return None
    parsed = parse_strict_iso(value)
    if parsed is None:
        raise ValidationError(
            message=INVALID_PUBLISH_AT,
            field="publish_at",
            context={"value": value},
        )
    return parsed


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message=f"{field} is required", field=field)
    return value


class JournalService:
    """
    Business logic for journals.

    Every public method returns response models, never ORM objects, so the
    routes never touch lazily loaded state.
    """

    # ── Helpers ───────────────────────────────────────────────────────────

    def _select(self):
        return select(Journal).execution_options(populate_existing=True)

    async def _load(self, db: AsyncSession, journal_id: UUID) -> Journal:
        result = await db.execute(self._select().where(Journal.id == journal_id))
        journal = result.scalar_one_or_none()
        if journal is None:
            raise NotFoundError(resource="journal", resource_id=str(journal_id))
        return journal

    async def _resolve_students(self, db: AsyncSession, ids: Sequence[UUID]) -> List[User]:
        """Load users for `ids` in the given order; unknown ids are a ValidationError."""
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)))
        found = {u.id: u for u in result.scalars().all()}
        unknown = [str(i) for i in ids if i not in found]
        if unknown:
            raise ValidationError(
                message=f"Unknown student id(s): {', '.join(unknown)}",
                field="taggedStudents",
                context={"unknown_ids": unknown},
            )
        return [found[i] for i in ids]

    async def _list(self, db: AsyncSession, query) -> List[JournalResponse]:
        result = await db.execute(query.order_by(Journal.created_at.desc(), Journal.id))
        return [JournalResponse.model_validate(j) for j in result.scalars().unique().all()]

    def _database_error(self, operation: str, error: Exception, **context: Any) -> DatabaseError:
        logger.error("Database error during %s: %s", operation, str(error))
        return DatabaseError(context={"operation": operation, **context})

    # ── CRUD ──────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        teacher_id: UUID,
        title: Optional[str],
        content: Optional[str],
        media: Optional[Iterable[str]] = None,
        media_type: Optional[str] = None,
        tagged_students: Any = None,
        publish_at: Optional[str] = None,
    ) -> JournalResponse:
        """
        Create a journal owned by `teacher_id`.

        Omitted tags mean no tags. When `publish_at` is omitted the database
        default (CURRENT_TIMESTAMP) applies, i.e. immediately visible.

        Raises:
            ValidationError: blank title/content, bad media type, malformed
                or unknown tag ids, non-strict publish_at
            DatabaseError: the insert failed
        """
        title = _require_text(title, "title")
        content = _require_text(content, "content")
        parsed_type = parse_media_type(media_type)
        tag_ids = parse_tagged_students(tagged_students) or []
        scheduled = parse_publish_at(publish_at)

        try:
            students = await self._resolve_students(db, tag_ids)
            journal = Journal(
                title=title,
                content=content,
                media=list(media or []),
                media_type=parsed_type,
                teacher_id=teacher_id,
                tagged_students=students,
            )
            if scheduled is not None:
                journal.publish_at = scheduled
            db.add(journal)
            await db.flush()
            journal = await self._load(db, journal.id)
        except ClassJournalError:
            raise
        except SQLAlchemyError as e:
            raise self._database_error("create_journal", e, teacher_id=str(teacher_id))

        logger.info(
            "Journal %s created by %s with %d tagged student(s)",
            journal.id,
            teacher_id,
            len(students),
        )
        return JournalResponse.model_validate(journal)

    async def list_journals(self, db: AsyncSession) -> List[JournalResponse]:
        """Every journal, unfiltered, newest first."""
        try:
            return await self._list(db, self._select())
        except SQLAlchemyError as e:
            raise self._database_error("list_journals", e)

    async def get(self, db: AsyncSession, journal_id: UUID) -> JournalResponse:
        try:
            journal = await self._load(db, journal_id)
        except SQLAlchemyError as e:
            raise self._database_error("get_journal", e, journal_id=str(journal_id))
        return JournalResponse.model_validate(journal)

    async def update(
        self,
        db: AsyncSession,
        journal_id: UUID,
        title: Optional[str] = None,
        content: Optional[str] = None,
        media: Optional[Iterable[str]] = None,
        media_type: Optional[str] = None,
        tagged_students: Any = None,
        publish_at: Optional[str] = None,
    ) -> JournalResponse:
        """
        Apply the supplied fields; omitted (None) fields keep their value.

        Raises:
            NotFoundError: no journal with this id
            ValidationError: same input rules as create
            DatabaseError: the update failed
        """
        if title is not None:
            _require_text(title, "title")
        if content is not None:
            _require_text(content, "content")
        parsed_type = parse_media_type(media_type)
        tag_ids = parse_tagged_students(tagged_students)
        scheduled = parse_publish_at(publish_at)

        try:
            journal = await self._load(db, journal_id)

            if title is not None:
                journal.title = title
            if content is not None:
                journal.content = content
            if media is not None:
                journal.media = list(media)
            if parsed_type is not None:
                journal.media_type = parsed_type
            if scheduled is not None:
                journal.publish_at = scheduled
            if tag_ids is not None:
                journal.tagged_students = await self._resolve_students(db, tag_ids)

            await db.flush()
            journal = await self._load(db, journal_id)
        except ClassJournalError:
            raise
        except SQLAlchemyError as e:
            raise self._database_error("update_journal", e, journal_id=str(journal_id))

        logger.info("Journal %s updated", journal_id)
        return JournalResponse.model_validate(journal)

    async def delete(self, db: AsyncSession, journal_id: UUID) -> None:
        """Delete a journal; its tagged-student rows go with it."""
        try:
            journal = await self._load(db, journal_id)
            await db.delete(journal)
            await db.flush()
        except ClassJournalError:
            raise
        except SQLAlchemyError as e:
            raise self._database_error("delete_journal", e, journal_id=str(journal_id))
        logger.info("Journal %s deleted", journal_id)

    async def publish(
        self,
        db: AsyncSession,
        journal_id: UUID,
        publish_at: Optional[str] = None,
    ) -> JournalResponse:
        """
        Set the publication time.

        `publish_at` must be the exact `2024-01-01T00:00:00.000Z` spelling;
        omitted means now (database clock).
        """
        scheduled = parse_publish_at(publish_at)

        try:
            journal = await self._load(db, journal_id)
            journal.publish_at = scheduled if scheduled is not None else func.now()
            await db.flush()
            journal = await self._load(db, journal_id)
        except ClassJournalError:
            raise
        except SQLAlchemyError as e:
            raise self._database_error("publish_journal", e, journal_id=str(journal_id))

        logger.info("Journal %s scheduled for %s", journal_id, journal.publish_at)
        return JournalResponse.model_validate(journal)

    # ── Feeds ─────────────────────────────────────────────────────────────

    async def teacher_feed(self, db: AsyncSession, teacher_id: UUID) -> List[JournalResponse]:
        """Journals authored by the teacher, newest first, regardless of publish_at."""
        try:
            return await self._list(db, self._select().where(Journal.teacher_id == teacher_id))
        except SQLAlchemyError as e:
            raise self._database_error("teacher_feed", e, teacher_id=str(teacher_id))

    async def student_feed(self, db: AsyncSession, student_id: UUID) -> List[JournalResponse]:
        """Published journals the student is tagged on, newest first."""
        query = (
            self._select()
            .join(journal_tagged_students, journal_tagged_students.c.journal_id == Journal.id)
            .where(journal_tagged_students.c.student_id == student_id)
            .where(or_(Journal.publish_at.is_(None), Journal.publish_at <= func.now()))
        )
        try:
            return await self._list(db, query)
        except SQLAlchemyError as e:
            raise self._database_error("student_feed", e, student_id=str(student_id))

    async def feed_for(self, db: AsyncSession, user_id: UUID) -> Tuple[str, List[JournalResponse]]:
        """
        Dispatch on the caller's stored role.

        Returns:
            (message, journals) so the route can echo which feed was served.

        Raises:
            NotFoundError: the user no longer exists
            ValidationError: the role is neither TEACHER nor STUDENT
        """
        user = await user_service.get_user(db, user_id)

        if user.role == Role.TEACHER:
            return "Teacher feed fetched successfully", await self.teacher_feed(db, user.id)
        if user.role == Role.STUDENT:
            return "Student feed fetched successfully", await self.student_feed(db, user.id)

        raise ValidationError(
            message=INVALID_FEED_ROLE,
            field="role",
            context={"role": user.role.value},
        )


journal_service = JournalService()
