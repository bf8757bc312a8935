# Routes package init
"""
ClassJournal Backend - API Routes Package
==========================================

Route Inventory:
    - user.py:    /api/user/register, /api/user/login, /api/user/feed,
                  /api/user/teacher, /api/user/student
    - journal.py: /api/journal/create, /api/journal/, /api/journal/{id},
                  /api/journal/{id}/publish
    - files.py:   GET /api/files/{path}   (stored media)
    - health.py:  GET /health

Routes stay thin: they read the request, call a service, and wrap the
result in a `{success, message, ...}` envelope. Errors propagate to the
global handlers in main.py.
"""
