"""
ClassJournal Backend - Journal Request/Response Schemas
========================================================

What:  The JSON contract for journals.
How:   Python attributes are snake_case; the wire names keep the API's
       established camelCase keys (`mediaType`, `teacherId`,
       `taggedStudents`) through aliases. FastAPI serializes response models
       by alias.

Timestamps are emitted as `2024-01-01T00:00:00.000Z`, the same spelling
`publish_at` must be sent in.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from classjournal.models.journal import MediaType
from classjournal.schemas.common import SuccessResponse
from classjournal.schemas.user import UserPublic
from classjournal.utils.timestamps import to_iso


class JournalResponse(BaseModel):
    """A journal with its teacher and tagged-student projections."""
    id: uuid.UUID
    title: str
    content: str
    media: List[str] = Field(default_factory=list, description="Media URLs in upload order")
    media_type: Optional[MediaType] = Field(default=None, alias="mediaType")
    teacher_id: uuid.UUID = Field(alias="teacherId")
    teacher: UserPublic
    tagged_students: List[UserPublic] = Field(default_factory=list, alias="taggedStudents")
    publish_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}

    @field_serializer("publish_at", "created_at", "updated_at")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value is not None else None


class JournalEnvelope(SuccessResponse):
    journal: JournalResponse


class JournalListEnvelope(SuccessResponse):
    journals: List[JournalResponse]


class PublishRequest(BaseModel):
    """
    Body of POST /api/journal/{id}/publish.

    `publish_at` is optional; omitted means "publish now". When present it
    must be exactly `YYYY-MM-DDTHH:MM:SS.sssZ`.
    """
    publish_at: Optional[str] = Field(
        default=None,
        description="ISO 8601 UTC instant, e.g. 2024-01-01T00:00:00.000Z",
    )
