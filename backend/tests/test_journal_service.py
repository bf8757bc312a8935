"""
ClassJournal Backend - Journal Service Tests
=============================================

Runs against an in-memory SQLite database built from the ORM models.

Test Strategy:
    ✅ Tag input shapes (list, JSON string, form list with one JSON string)
    ✅ Create: tags, media type normalization, unknown ids, strict publish_at
    ✅ Update: omitted fields unchanged, tag list replaces, [] clears
    ✅ Publish: strict ISO round-trip, omitted means now
    ✅ Feeds: teacher ownership, student visibility window, role dispatch
    ✅ Delete and user removal cascade the tag associations
"""

import uuid

import pytest
from sqlalchemy import delete, func, select

from classjournal.exceptions import NotFoundError, ValidationError
from classjournal.models.journal import MediaType, journal_tagged_students
from classjournal.models.user import Role, User
from classjournal.services.journal_service import (
    INVALID_FEED_ROLE,
    INVALID_PUBLISH_AT,
    journal_service,
    parse_media_type,
    parse_publish_at,
    parse_tagged_students,
)
from classjournal.services.user_service import user_service

FUTURE = "2999-01-01T00:00:00.000Z"
PAST = "2020-01-01T00:00:00.000Z"


class TestParseTaggedStudents:

    def setup_method(self):
        self.a = uuid.uuid4()
        self.b = uuid.uuid4()

    def test_omitted(self):
        assert parse_tagged_students(None) is None

    def test_plain_list(self):
        assert parse_tagged_students([str(self.a), str(self.b)]) == [self.a, self.b]

    def test_json_string(self):
        assert parse_tagged_students(f'["{self.a}", "{self.b}"]') == [self.a, self.b]

    def test_form_list_with_one_json_string(self):
        assert parse_tagged_students([f'["{self.a}"]']) == [self.a]

    def test_single_bare_id(self):
        assert parse_tagged_students(str(self.a)) == [self.a]

    def test_empty_forms_clear(self):
        assert parse_tagged_students("") == []
        assert parse_tagged_students("[]") == []
        assert parse_tagged_students([]) == []

    def test_duplicates_collapse(self):
        assert parse_tagged_students([str(self.a), str(self.a)]) == [self.a]

    def test_malformed_json(self):
        with pytest.raises(ValidationError, match="JSON array"):
            parse_tagged_students('["unterminated')

    def test_json_entries_must_be_ids(self):
        with pytest.raises(ValidationError, match="Invalid student id"):
            parse_tagged_students('[{"id": 1}]')
        with pytest.raises(ValidationError, match="Invalid student id"):
            parse_tagged_students('{"id": 1}')

    def test_non_uuid(self):
        with pytest.raises(ValidationError, match="Invalid student id"):
            parse_tagged_students(["not-a-uuid"])


class TestParseScalars:

    def test_media_type_case_insensitive(self):
        assert parse_media_type("image") is MediaType.IMAGE
        assert parse_media_type("Video") is MediaType.VIDEO
        assert parse_media_type(None) is None
        assert parse_media_type("") is None

    def test_media_type_unknown(self):
        with pytest.raises(ValidationError, match="Invalid mediaType"):
            parse_media_type("hologram")

    def test_publish_at_strict(self):
        assert parse_publish_at(None) is None
        assert parse_publish_at("") is None
        assert parse_publish_at("2024-01-01T00:00:00.000Z").year == 2024

    @pytest.mark.parametrize(
        "value",
        [
            "next tuesday",
            "2024-01-01",
            "2024-01-01T00:00:00Z",
            "2024-01-01T00:00:00.000+00:00",
            "2024-02-30T00:00:00.000Z",
        ],
    )
    def test_publish_at_rejects_non_canonical(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_publish_at(value)
        assert exc_info.value.message == INVALID_PUBLISH_AT


class TestCreateAndRead:

    @pytest.mark.asyncio
    async def test_create_with_tags(self, db_session, teacher, student):
        journal = await journal_service.create(
            db_session,
            teacher_id=teacher.id,
            title="Field trip",
            content="Bring a packed lunch.",
            media_type="image",
            tagged_students=f'["{student.id}"]',
        )

        assert journal.title == "Field trip"
        assert journal.teacher_id == teacher.id
        assert journal.teacher.email == teacher.email
        assert [s.id for s in journal.tagged_students] == [student.id]
        assert journal.media_type is MediaType.IMAGE
        assert journal.media == []
        assert journal.publish_at is not None

    @pytest.mark.asyncio
    async def test_create_without_tags(self, db_session, teacher):
        journal = await journal_service.create(
            db_session, teacher_id=teacher.id, title="Notice", content="No school Friday"
        )
        assert journal.tagged_students == []

    @pytest.mark.asyncio
    async def test_create_with_unknown_student(self, db_session, teacher):
        ghost = uuid.uuid4()
        with pytest.raises(ValidationError) as exc_info:
            await journal_service.create(
                db_session,
                teacher_id=teacher.id,
                title="t",
                content="c",
                tagged_students=[str(ghost)],
            )
        assert exc_info.value.context["unknown_ids"] == [str(ghost)]

    @pytest.mark.asyncio
    async def test_create_requires_title_and_content(self, db_session, teacher):
        with pytest.raises(ValidationError, match="title is required"):
            await journal_service.create(db_session, teacher_id=teacher.id, title=" ", content="c")
        with pytest.raises(ValidationError, match="content is required"):
            await journal_service.create(db_session, teacher_id=teacher.id, title="t", content=None)

    @pytest.mark.asyncio
    async def test_create_with_schedule(self, db_session, teacher):
        journal = await journal_service.create(
            db_session, teacher_id=teacher.id, title="t", content="c", publish_at=FUTURE
        )
        assert journal.publish_at.year == 2999

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError, match="Journal not found"):
            await journal_service.get(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_newest_first(self, db_session, teacher):
        first = await journal_service.create(db_session, teacher_id=teacher.id, title="first", content="c")
        second = await journal_service.create(db_session, teacher_id=teacher.id, title="second", content="c")

        journals = await journal_service.list_journals(db_session)
        assert [j.id for j in journals] == [second.id, first.id]


class TestUpdate:

    @pytest.mark.asyncio
    async def test_omitted_fields_unchanged(self, db_session, teacher, student):
        created = await journal_service.create(
            db_session,
            teacher_id=teacher.id,
            title="Original",
            content="Body",
            media=["/api/files/2024/01/01/a.png"],
            media_type="IMAGE",
            tagged_students=[str(student.id)],
        )

        updated = await journal_service.update(db_session, created.id, title="Renamed")

        assert updated.title == "Renamed"
        assert updated.content == "Body"
        assert updated.media == ["/api/files/2024/01/01/a.png"]
        assert updated.media_type is MediaType.IMAGE
        assert [s.id for s in updated.tagged_students] == [student.id]

    @pytest.mark.asyncio
    async def test_tag_list_replaces(self, db_session, teacher, student, other_student):
        created = await journal_service.create(
            db_session, teacher_id=teacher.id, title="t", content="c", tagged_students=[str(student.id)]
        )

        updated = await journal_service.update(
            db_session, created.id, tagged_students=[str(other_student.id)]
        )
        assert [s.id for s in updated.tagged_students] == [other_student.id]

        cleared = await journal_service.update(db_session, created.id, tagged_students=[])
        assert cleared.tagged_students == []

    @pytest.mark.asyncio
    async def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await journal_service.update(db_session, uuid.uuid4(), title="x")

    @pytest.mark.asyncio
    async def test_update_rejects_bad_publish_at(self, db_session, teacher):
        created = await journal_service.create(db_session, teacher_id=teacher.id, title="t", content="c")
        with pytest.raises(ValidationError, match="publish_at"):
            await journal_service.update(db_session, created.id, publish_at="tomorrow")


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_at_round_trips(self, db_session, teacher):
        created = await journal_service.create(db_session, teacher_id=teacher.id, title="t", content="c")

        published = await journal_service.publish(db_session, created.id, publish_at=FUTURE)

        assert published.model_dump(by_alias=True)["publish_at"] == FUTURE

    @pytest.mark.asyncio
    async def test_publish_now_when_omitted(self, db_session, teacher, student):
        created = await journal_service.create(
            db_session,
            teacher_id=teacher.id,
            title="t",
            content="c",
            tagged_students=[str(student.id)],
            publish_at=FUTURE,
        )
        assert await journal_service.student_feed(db_session, student.id) == []

        published = await journal_service.publish(db_session, created.id)

        assert published.publish_at.year < 2999
        assert [j.id for j in await journal_service.student_feed(db_session, student.id)] == [created.id]

    @pytest.mark.asyncio
    async def test_publish_rejects_non_canonical(self, db_session, teacher):
        created = await journal_service.create(db_session, teacher_id=teacher.id, title="t", content="c")
        with pytest.raises(ValidationError) as exc_info:
            await journal_service.publish(db_session, created.id, publish_at="2024-01-01T00:00:00Z")
        assert exc_info.value.message == INVALID_PUBLISH_AT

    @pytest.mark.asyncio
    async def test_publish_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await journal_service.publish(db_session, uuid.uuid4())


class TestFeeds:

    @pytest.mark.asyncio
    async def test_student_sees_only_published_tagged(self, db_session, teacher, student, other_student):
        visible = await journal_service.create(
            db_session, teacher_id=teacher.id, title="visible", content="c",
            tagged_students=[str(student.id)], publish_at=PAST,
        )
        await journal_service.create(
            db_session, teacher_id=teacher.id, title="scheduled", content="c",
            tagged_students=[str(student.id)], publish_at=FUTURE,
        )
        await journal_service.create(
            db_session, teacher_id=teacher.id, title="someone else", content="c",
            tagged_students=[str(other_student.id)],
        )

        feed = await journal_service.student_feed(db_session, student.id)
        assert [j.id for j in feed] == [visible.id]

    @pytest.mark.asyncio
    async def test_default_publish_at_is_immediately_visible(self, db_session, teacher, student):
        created = await journal_service.create(
            db_session, teacher_id=teacher.id, title="now", content="c", tagged_students=[str(student.id)]
        )
        feed = await journal_service.student_feed(db_session, student.id)
        assert [j.id for j in feed] == [created.id]

    @pytest.mark.asyncio
    async def test_teacher_feed_includes_scheduled(self, db_session, teacher):
        other_teacher = await user_service.register(
            db_session, email="t2@school.test", password="pw", role="teacher"
        )
        mine = await journal_service.create(
            db_session, teacher_id=teacher.id, title="mine", content="c", publish_at=FUTURE
        )
        await journal_service.create(db_session, teacher_id=other_teacher.id, title="theirs", content="c")

        feed = await journal_service.teacher_feed(db_session, teacher.id)
        assert [j.id for j in feed] == [mine.id]

    @pytest.mark.asyncio
    async def test_feed_for_dispatches_on_role(self, db_session, teacher, student):
        await journal_service.create(
            db_session, teacher_id=teacher.id, title="t", content="c", tagged_students=[str(student.id)]
        )

        message, journals = await journal_service.feed_for(db_session, teacher.id)
        assert message == "Teacher feed fetched successfully"
        assert len(journals) == 1

        message, journals = await journal_service.feed_for(db_session, student.id)
        assert message == "Student feed fetched successfully"
        assert len(journals) == 1

    @pytest.mark.asyncio
    async def test_feed_for_admin_is_rejected(self, db_session):
        admin = await user_service.register(db_session, email="a@school.test", password="pw", role="admin")
        with pytest.raises(ValidationError) as exc_info:
            await journal_service.feed_for(db_session, admin.id)
        assert exc_info.value.message == INVALID_FEED_ROLE
        assert exc_info.value.context["role"] == Role.ADMIN.value

    @pytest.mark.asyncio
    async def test_feed_for_missing_user(self, db_session):
        with pytest.raises(NotFoundError):
            await journal_service.feed_for(db_session, uuid.uuid4())


class TestCascades:

    async def _tag_rows(self, db_session) -> int:
        result = await db_session.execute(select(func.count()).select_from(journal_tagged_students))
        return result.scalar_one()

    @pytest.mark.asyncio
    async def test_delete_removes_tag_rows(self, db_session, teacher, student, other_student):
        created = await journal_service.create(
            db_session, teacher_id=teacher.id, title="t", content="c",
            tagged_students=[str(student.id), str(other_student.id)],
        )
        assert await self._tag_rows(db_session) == 2

        await journal_service.delete(db_session, created.id)

        assert await self._tag_rows(db_session) == 0
        with pytest.raises(NotFoundError):
            await journal_service.get(db_session, created.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await journal_service.delete(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_deleting_student_drops_their_tags(self, db_session, teacher, student, other_student):
        created = await journal_service.create(
            db_session, teacher_id=teacher.id, title="t", content="c",
            tagged_students=[str(student.id), str(other_student.id)],
        )

        await db_session.execute(delete(User).where(User.id == student.id))
        await db_session.flush()

        journal = await journal_service.get(db_session, created.id)
        assert [s.id for s in journal.tagged_students] == [other_student.id]
