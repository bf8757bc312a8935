# Middleware package init
"""
ClassJournal Backend - Middleware Package
==========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

The request id is assigned before the access log runs, so every access line
and every error body for a request carry the same id.
"""
