"""API router initialization."""

# Hey future me, this is the API router aggregator. Everything the web client and the
# mirror instance call lives under /api/music; the health probe sits at /api/health.
# main.py mounts api_router at /api.

from fastapi import APIRouter

from muzak.api.routers import catalog, health, ingest

api_router = APIRouter()

api_router.include_router(ingest.router, prefix="/music", tags=["Ingestion"])
api_router.include_router(catalog.router, prefix="/music", tags=["Catalog"])
api_router.include_router(health.router, tags=["Health"])

__all__ = [
    "api_router",
    "catalog",
    "health",
    "ingest",
]
