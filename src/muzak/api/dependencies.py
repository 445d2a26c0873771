"""Dependency injection for API endpoints."""

import logging
from typing import cast

from fastapi import HTTPException, Request

from muzak.application.services.catalog_service import CatalogService
from muzak.application.workers.background_tasks import BackgroundTaskRunner
from muzak.config import Settings, get_settings

logger = logging.getLogger(__name__)


# Hey future me, the CatalogService is built once in lifespan() (see lifecycle.py) and
# attached to app.state. If it isn't there, startup failed or hasn't finished - answer
# 503 instead of crashing with AttributeError.
def get_catalog_service(request: Request) -> CatalogService:
    """Get the catalog service from app state.

    Raises:
        HTTPException: 503 if the service isn't initialized
    """
    service = getattr(request.app.state, "catalog_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Catalog service not initialized")
    return cast(CatalogService, service)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was started with (falls back to the cached env settings)."""
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()


def get_background_tasks(request: Request) -> BackgroundTaskRunner | None:
    """Background task runner, None outside the lifespan (tests without lifespan)."""
    return getattr(request.app.state, "background_tasks", None)
