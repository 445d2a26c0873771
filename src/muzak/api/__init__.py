"""API module for muzak.

The entry point is `api_router` from routers/, mounted under /api in main.py.

Structure:
- routers/: ingestion, catalog and health endpoints
- schemas/: request models and response builders
- dependencies.py: access to the CatalogService on app.state
- exception_handlers.py: domain exception -> HTTP status mapping
"""

from muzak.api.routers import api_router

__all__ = ["api_router"]
