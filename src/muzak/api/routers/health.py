"""Health check endpoint for Docker probes and the mirror's curiosity."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from muzak.api.dependencies import get_background_tasks
from muzak.application.workers.background_tasks import BackgroundTaskRunner

router = APIRouter()

_STATUS_BY_LOAD_STATE = {
    "loaded": "healthy",
    "pending": "starting",
    "failed": "degraded",
}


class HealthStatus(BaseModel):
    """Overall health status response."""

    status: str = Field(
        description="healthy; starting while the catalog loads; degraded if it failed"
    )
    timestamp: str = Field(description="ISO timestamp of health check")
    loaded: bool = Field(description="Stored catalog has been loaded")
    error: str | None = Field(default=None, description="Why the catalog load failed")
    counts: dict[str, int] = Field(default_factory=dict)
    replication: bool = Field(default=False, description="A mirror is configured")
    background_tasks: dict[str, int] = Field(default_factory=dict)


# Hey future me - "starting" and "degraded" are NOT errors for the probe: the app serves
# reads either way (see lifecycle.load_catalog), so this stays 200. "degraded" means the
# stored catalog couldn't be read and nothing gets saved until a restart fixes it.
@router.get("/health", response_model=HealthStatus)
async def health(
    request: Request,
    runner: BackgroundTaskRunner | None = Depends(get_background_tasks),
) -> HealthStatus:
    """Catalog load state and collection sizes."""
    service = getattr(request.app.state, "catalog_service", None)
    if service is None:
        return HealthStatus(
            status="starting",
            timestamp=datetime.now(UTC).isoformat(),
            loaded=False,
            background_tasks=runner.get_status() if runner is not None else {},
        )

    status: dict[str, Any] = service.status()
    loaded = bool(status.pop("loaded", False))
    return HealthStatus(
        status=_STATUS_BY_LOAD_STATE[service.load_state],
        timestamp=datetime.now(UTC).isoformat(),
        loaded=loaded,
        error=service.load_error,
        counts={k: int(v) for k, v in status.items()},
        replication=service.replication_enabled,
        background_tasks=runner.get_status() if runner is not None else {},
    )
