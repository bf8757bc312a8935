"""
ClassJournal Backend - Application Package
===========================================

What: Teacher-authored journal posts, student tagging, scheduled publication
      and role-scoped feeds behind a JSON API.
Who:  Imported by uvicorn (`classjournal.main:app`), Alembic, and pytest.

Layering:

    ┌─────────────────────────────────────┐
    │     Routes + auth dependencies      │  ← HTTP, bearer tokens, role guards
    ├─────────────────────────────────────┤
    │   Services (user, journal, media)   │  ← business rules, error mapping
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘

Routes never touch SQL directly; services never build HTTP responses.
"""

__version__ = "1.0.0"
