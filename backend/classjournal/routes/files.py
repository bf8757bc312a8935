"""
ClassJournal Backend - Media File Route
========================================

Serves files stored by MediaService at the URLs recorded in journal `media`
lists. Paths are resolved inside the storage root only.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from classjournal.schemas.common import ErrorResponse
from classjournal.services.media_service import media_service

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    summary="Download stored media",
)
async def get_file(file_path: str) -> FileResponse:
    path = media_service.resolve(file_path)
    return FileResponse(path)
