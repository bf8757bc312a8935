"""
ClassJournal Backend - Journal Routes
======================================

What:  Journal CRUD and publication under /api/journal.
How:   Create and update take multipart/form-data so a media file can ride
       along with the text fields; publish takes a small JSON body.
Who:   Teachers write; any authenticated user reads.

Routes:
    POST   /api/journal/create         TEACHER   (201)
    GET    /api/journal/               any user
    GET    /api/journal/{id}           any user
    PUT    /api/journal/{id}           TEACHER
    DELETE /api/journal/{id}           TEACHER
    POST   /api/journal/{id}/publish   TEACHER

Upload Flow:
    1. Role guard runs first (401/403 before any file is touched)
    2. Media file (optional) is validated and stored → URL + detected type
    3. JournalService writes the row; the detected type wins over `mediaType`
    4. On any failure after step 2 the stored file is removed
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_identity, require_roles
from classjournal.database import get_db_session
from classjournal.models.user import User
from classjournal.schemas.common import ErrorResponse, SuccessResponse
from classjournal.schemas.journal import JournalEnvelope, JournalListEnvelope, PublishRequest
from classjournal.services.journal_service import journal_service
from classjournal.services.media_service import StoredMedia, media_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/journal",
    tags=["Journal"],
    dependencies=[Depends(get_current_identity)],
)

_errors = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Caller is not a teacher", "model": ErrorResponse},
    404: {"description": "Journal not found", "model": ErrorResponse},
}


async def _store_upload(media: Optional[UploadFile]) -> Optional[StoredMedia]:
    """Store the uploaded file, if one was sent. Empty file fields count as absent."""
    if media is None or not media.filename:
        return None
    try:
        content = await media.read()
        logger.info("Received media upload: filename=%s, size=%d bytes", media.filename, len(content))
        return await media_service.validate_and_store(
            filename=media.filename,
            content=content,
            content_length=media.size,
        )
    finally:
        await media.close()


@router.post(
    "/create",
    status_code=201,
    response_model=JournalEnvelope,
    responses=_errors,
    summary="Create a journal",
)
async def create_journal(
    teacher: User = Depends(require_roles("teacher")),
    title: str = Form(..., description="Journal title"),
    content: str = Form(..., description="Journal body"),
    media: Optional[UploadFile] = File(
        default=None,
        description="Optional attachment (jpg, jpeg, png, gif, mp4, mov, mp3, wav, pdf)",
    ),
    media_type: Optional[str] = Form(
        default=None, alias="mediaType", description="IMAGE, VIDEO, AUDIO or PDF"
    ),
    tagged_students: Optional[List[str]] = Form(
        default=None,
        alias="taggedStudents",
        description="Student ids, repeated or as one JSON array string",
    ),
    publish_at: Optional[str] = Form(
        default=None,
        description="Scheduled publication, e.g. 2024-01-01T00:00:00.000Z",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> JournalEnvelope:
    stored = await _store_upload(media)
    try:
        journal = await journal_service.create(
            db,
            teacher_id=teacher.id,
            title=title,
            content=content,
            media=[stored.url] if stored else [],
            media_type=stored.media_type.value if stored else media_type,
            tagged_students=tagged_students,
            publish_at=publish_at,
        )
    except Exception:
        if stored:
            await media_service.cleanup_file(stored.absolute_path)
        raise
    return JournalEnvelope(message="Journal created successfully", journal=journal)


@router.get(
    "/",
    response_model=JournalListEnvelope,
    responses={401: _errors[401]},
    summary="List all journals",
)
async def list_journals(db: AsyncSession = Depends(get_db_session)) -> JournalListEnvelope:
    journals = await journal_service.list_journals(db)
    return JournalListEnvelope(message="Journals fetched successfully", journals=journals)


@router.get(
    "/{journal_id}",
    response_model=JournalEnvelope,
    responses={401: _errors[401], 404: _errors[404]},
    summary="Get one journal",
)
async def get_journal(
    journal_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> JournalEnvelope:
    journal = await journal_service.get(db, journal_id)
    return JournalEnvelope(message="Journal fetched successfully", journal=journal)


@router.put(
    "/{journal_id}",
    response_model=JournalEnvelope,
    responses=_errors,
    summary="Update a journal",
)
async def update_journal(
    journal_id: UUID,
    teacher: User = Depends(require_roles("teacher")),
    title: Optional[str] = Form(default=None),
    content: Optional[str] = Form(default=None),
    media: Optional[UploadFile] = File(default=None),
    media_type: Optional[str] = Form(default=None, alias="mediaType"),
    tagged_students: Optional[List[str]] = Form(default=None, alias="taggedStudents"),
    publish_at: Optional[str] = Form(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> JournalEnvelope:
    """
    Fields left out of the form keep their current value. A new media file
    replaces the media list; without one the existing media stays.
    """
    stored = await _store_upload(media)
    try:
        journal = await journal_service.update(
            db,
            journal_id,
            title=title,
            content=content,
            media=[stored.url] if stored else None,
            media_type=stored.media_type.value if stored else media_type,
            tagged_students=tagged_students,
            publish_at=publish_at,
        )
    except Exception:
        if stored:
            await media_service.cleanup_file(stored.absolute_path)
        raise
    return JournalEnvelope(message="Journal updated successfully", journal=journal)


@router.delete(
    "/{journal_id}",
    response_model=SuccessResponse,
    responses=_errors,
    summary="Delete a journal",
)
async def delete_journal(
    journal_id: UUID,
    teacher: User = Depends(require_roles("teacher")),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await journal_service.delete(db, journal_id)
    return SuccessResponse(message="Journal deleted successfully")


@router.post(
    "/{journal_id}/publish",
    response_model=JournalEnvelope,
    responses=_errors,
    summary="Publish or schedule a journal",
)
async def publish_journal(
    journal_id: UUID,
    body: Optional[PublishRequest] = None,
    teacher: User = Depends(require_roles("teacher")),
    db: AsyncSession = Depends(get_db_session),
) -> JournalEnvelope:
    """Without `publish_at` the journal is published immediately."""
    journal = await journal_service.publish(
        db,
        journal_id,
        publish_at=body.publish_at if body else None,
    )
    return JournalEnvelope(message="Journal published successfully", journal=journal)
