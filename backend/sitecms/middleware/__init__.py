# Middleware package init
"""
SiteCMS Backend — Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: Generate (or accept) the correlation ID
    2. Logging: Log method, path, status and duration with that ID

    Responses pass back through the chain in reverse, so the request ID
    header is added and the duration covers the whole handler.
"""
