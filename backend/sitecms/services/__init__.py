# Services package init
"""
SiteCMS Backend — Services Layer
==================================

What:  Business logic between routes (HTTP) and the document store.
How:   Services receive the database and the blob client per call (FastAPI
       dependencies), so they hold no request state.

Service Inventory:
    - BlobClient (abstract):  Upload host interface (blob_base.py)
    - ImageKitBlobClient:     ImageKit REST API over httpx
    - LocalBlobClient:        Local disk storage for development
    - upload_service:         Reading, validating and forwarding file parts
    - ResourceService:        Generic CRUD driven by entity definitions
    - merge_engine:           ServicePage patch and category image merging
    - ServicePageService:     ServicePage create/replace/patch/delete
"""
