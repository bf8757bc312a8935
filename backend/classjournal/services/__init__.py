# Services package init
"""
ClassJournal Backend - Services Layer
======================================

Business logic between the routes (HTTP) and the database.

Service Inventory:
    - UserService:    registration, login, user lookup
    - JournalService: journal CRUD, publication, teacher and student feeds
    - MediaService:   upload validation, storage, cleanup, and lookup

Services receive the request's AsyncSession as their first argument and
raise ClassJournalError subclasses; they never build HTTP responses.
"""
