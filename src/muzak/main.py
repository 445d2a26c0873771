"""FastAPI application factory and server entry point."""

import logging

import uvicorn
from fastapi import FastAPI

from muzak import __version__
from muzak.api import api_router
from muzak.api.exception_handlers import register_exception_handlers
from muzak.config import Settings, get_settings
from muzak.infrastructure.lifecycle import lifespan
from muzak.infrastructure.observability import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


# Hey future me, settings passed here win over the env (tests hand in a Settings pointing
# at tmp_path); lifespan() reads them back from app.state.settings.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="muzak",
        description="Audio ingestion and catalog aggregation service",
        version=__version__,
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


def run() -> None:
    """Run the API server with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "muzak.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
