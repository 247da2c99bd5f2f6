# Routes package init
"""
SiteCMS Backend — API Routes Package
======================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles one resource family.

Route Inventory:
    - resources.py:    /api/box, /api/business, /api/item, /api/testimonial,
                       /api/video, /api/images, /api/service,
                       /api/content-section   (one router per entity definition)
    - servicepages.py: /api/servicepage       (create, replace, patch, ...)
    - files.py:        GET /api/files/{path}  (local blob backend only)
    - health.py:       GET /health

Routes stay THIN: read the body and file parts, call a service, wrap the
result in {message, data}. Errors are raised as SiteCMSError subclasses and
formatted by the handlers in main.py.
"""
