"""
ClassJournal Backend - User Routes
===================================

What:  Registration, login, and the per-user journal feeds.
Who:   Any client; feed routes require a bearer token.

Routes:
    POST /api/user/register   create an account (201)
    POST /api/user/login      exchange credentials for a token
    GET  /api/user/feed       feed chosen by the caller's stored role
    GET  /api/user/teacher    teacher feed (TEACHER only)
    GET  /api/user/student    student feed (STUDENT only)
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classjournal.auth.dependencies import get_current_identity, require_roles
from classjournal.auth.security import Identity
from classjournal.database import get_db_session
from classjournal.models.user import User
from classjournal.schemas.common import ErrorResponse
from classjournal.schemas.journal import JournalListEnvelope
from classjournal.schemas.user import LoginEnvelope, LoginRequest, RegisterRequest, UserEnvelope
from classjournal.services.journal_service import journal_service
from classjournal.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["User"])

_auth_errors = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Role not permitted", "model": ErrorResponse},
}


@router.post(
    "/register",
    status_code=201,
    response_model=UserEnvelope,
    responses={400: {"description": "Duplicate email or invalid input", "model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    """Role is optional (defaults to student) and case-insensitive."""
    user = await user_service.register(
        db,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
    )
    return UserEnvelope(message="User registered successfully", user=user)


@router.post(
    "/login",
    response_model=LoginEnvelope,
    responses={400: {"description": "Unknown email or wrong password", "model": ErrorResponse}},
    summary="Log in and receive a bearer token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoginEnvelope:
    user, token = await user_service.login(db, email=body.email, password=body.password)
    return LoginEnvelope(message="User logged in successfully", user=user, token=token)


@router.get(
    "/feed",
    response_model=JournalListEnvelope,
    responses={
        400: {"description": "Role has no feed", "model": ErrorResponse},
        401: _auth_errors[401],
        404: {"description": "User no longer exists", "model": ErrorResponse},
    },
    summary="Get the caller's feed",
)
async def feed(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> JournalListEnvelope:
    """
    Teachers get the journals they wrote; students get published journals
    they are tagged on. The role is read from the database, not the token.
    """
    message, journals = await journal_service.feed_for(db, identity.user_id)
    return JournalListEnvelope(message=message, journals=journals)


@router.get(
    "/teacher",
    response_model=JournalListEnvelope,
    responses=_auth_errors,
    summary="Teacher feed",
)
async def teacher_feed(
    teacher: User = Depends(require_roles("teacher")),
    db: AsyncSession = Depends(get_db_session),
) -> JournalListEnvelope:
    journals = await journal_service.teacher_feed(db, teacher.id)
    return JournalListEnvelope(message="Teacher feed fetched successfully", journals=journals)


@router.get(
    "/student",
    response_model=JournalListEnvelope,
    responses=_auth_errors,
    summary="Student feed",
)
async def student_feed(
    student: User = Depends(require_roles("student")),
    db: AsyncSession = Depends(get_db_session),
) -> JournalListEnvelope:
    journals = await journal_service.student_feed(db, student.id)
    return JournalListEnvelope(message="Student feed fetched successfully", journals=journals)
