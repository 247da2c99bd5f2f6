"""
SiteCMS Backend — Application Package Initializer
===================================================

What: The `sitecms` package: REST backend for the company website's content.
Who:  Imported by uvicorn (sitecms.main:app) and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← body/file parsing, {message, data}
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← CRUD, merge engine, uploads
    ├─────────────────────────────────────┤
    │     Entity definitions & Schemas    │  ← field tables + Pydantic envelopes
    ├─────────────────────────────────────┤
    │   Document store  │  Blob client    │  ← motor (MongoDB) │ ImageKit/httpx
    └─────────────────────────────────────┘

    Routes never talk to MongoDB or ImageKit directly; the database and blob
    client are FastAPI dependencies so tests can swap in fakes.
"""

__version__ = "1.0.0"
