"""Application lifecycle management for startup and shutdown tasks.

This module handles the FastAPI lifespan context manager that builds the object graph
and orchestrates catalog loading.

Startup order:
1. logging, storage directories, SQLite path validation
2. Database + tables
3. shared HTTP client, Drive client with its listing strategies, mirror client
4. repository, ingestion coordinator, CatalogService -> app.state
5. catalog load raced against observability.startup_load_timeout; a slow load is
   swapped in from a background task, the app serves (possibly empty) meanwhile
6. mirror restore when the local catalog came back empty (background, read-only)

Shutdown: background tasks (drain then cancel), HTTP pool, database.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from muzak.application.services.batch_ingestion import BatchIngestionCoordinator
from muzak.application.services.catalog_service import CatalogService
from muzak.application.services.cover_art import CoverArtOptimizer
from muzak.application.services.local_folder_scanner import LocalFolderScanner
from muzak.application.services.metadata_extractor import MetadataExtractor
from muzak.application.services.remote_folder_crawler import RemoteFolderCrawler
from muzak.application.services.replication_sync import ReplicationSync
from muzak.application.workers.background_tasks import BackgroundTaskRunner
from muzak.config import Settings, get_settings
from muzak.domain.entities import CatalogSnapshot
from muzak.domain.exceptions import ConfigurationError
from muzak.infrastructure.integrations.drive_client import RemoteDriveClient
from muzak.infrastructure.integrations.drive_listing import (
    DriveApiListingStrategy,
    HtmlScrapeListingStrategy,
)
from muzak.infrastructure.integrations.http_fetch import BoundedRedirectFetcher
from muzak.infrastructure.integrations.http_pool import HttpClientPool
from muzak.infrastructure.integrations.mirror_client import create_mirror_client
from muzak.infrastructure.observability import configure_logging
from muzak.infrastructure.persistence import (
    CatalogRepository,
    Database,
    SqlCatalogStore,
)

logger = logging.getLogger(__name__)


# Hey future me, SQLite creates -journal/-wal files next to the .db file, so the parent
# directory must exist AND be writable. Checking here gives a clear ConfigurationError
# instead of a cryptic "unable to open database file" on the first save.
def _validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    try:
        url = make_url(settings.database.url)
    except ArgumentError as exc:
        raise ConfigurationError(
            f"Invalid database URL '{settings.database.url}': {exc}"
        ) from exc
    if not url.drivername.startswith("sqlite") or not url.database:
        return
    if url.database == ":memory:":
        return

    db_path = Path(url.database)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        probe = db_path.parent / f".{db_path.stem}_write_test"
        probe.write_bytes(b"test")
        probe.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Database directory '{db_path.parent}' is not writable: {exc}"
        ) from exc


def build_catalog_service(
    settings: Settings,
    database: Database,
    client: httpx.AsyncClient,
    runner: BackgroundTaskRunner,
) -> CatalogService:
    """Wire repository, ingestion, remote access and replication together."""
    fetcher = BoundedRedirectFetcher(client, max_redirects=settings.remote.max_redirects)
    drive_client = RemoteDriveClient(
        fetcher,
        strategies=[
            DriveApiListingStrategy(fetcher, settings.remote.google_api_key),
            HtmlScrapeListingStrategy(fetcher),
        ],
        temp_dir=settings.storage.temp_path,
    )

    repository = CatalogRepository()
    extractor = MetadataExtractor(
        CoverArtOptimizer(
            max_size=settings.ingestion.cover_max_size,
            quality=settings.ingestion.cover_quality,
        )
    )
    coordinator = BatchIngestionCoordinator(repository, extractor, drive_client)
    replication = ReplicationSync(
        repository,
        create_mirror_client(settings, client),
        runner,
        push_timeout=settings.replication.push_timeout,
    )
    return CatalogService(
        repository=repository,
        store=SqlCatalogStore(database),
        coordinator=coordinator,
        scanner=LocalFolderScanner(
            coordinator, batch_size=settings.ingestion.local_batch_size
        ),
        crawler=RemoteFolderCrawler(drive_client),
        replication=replication,
        settings=settings.ingestion,
    )


async def _complete_late_load(
    service: CatalogService,
    load_task: "asyncio.Task[CatalogSnapshot]",
    restore_on_empty: bool,
) -> None:
    try:
        snapshot = await load_task
    except (SQLAlchemyError, OSError) as e:
        service.mark_load_failed(e)
        return
    await service.adopt_loaded(snapshot)
    logger.info("Late catalog load swapped in")
    if restore_on_empty:
        await service.restore_from_mirror()


# Hey future me - the 2s race. The stored catalog can be big (cover art data URIs in
# every album document), and we'd rather serve an empty catalog for a moment than hold
# the port closed. shield() keeps the load running after wait_for() gives up; the
# background task then adopts it, and adopt_loaded() merges whatever got ingested in the
# meantime (saves wait for that, see CatalogService._persist). A load that FAILS marks
# the service degraded: no saves, no mirror restore, so a broken database is never
# overwritten by a partial catalog or the mirror's copy.
async def load_catalog(
    service: CatalogService,
    runner: BackgroundTaskRunner,
    settings: Settings,
) -> None:
    """Load the stored catalog, falling back to a background load on timeout."""
    restore_on_empty = settings.replication.restore_on_empty
    load_task: asyncio.Task[CatalogSnapshot] = asyncio.create_task(
        service.load(), name="catalog-load"
    )
    try:
        snapshot = await asyncio.wait_for(
            asyncio.shield(load_task),
            timeout=settings.observability.startup_load_timeout,
        )
    except TimeoutError:
        logger.warning(
            "Catalog load exceeded %.1fs, serving while it completes in the background",
            settings.observability.startup_load_timeout,
        )
        runner.spawn(
            _complete_late_load(service, load_task, restore_on_empty),
            name="catalog-late-load",
        )
        return
    except (SQLAlchemyError, OSError) as e:
        logger.exception("Failed to load stored catalog, serving degraded: %s", e)
        service.mark_load_failed(e)
        return

    await service.adopt_loaded(snapshot)
    if restore_on_empty:
        runner.spawn(service.restore_from_mirror(), name="mirror-restore")


# Listen future me, @asynccontextmanager makes this a CONTEXT MANAGER for FastAPI lifespan!
# Everything before `yield` runs at STARTUP, everything after runs at SHUTDOWN. The
# try/finally ensures cleanup ALWAYS runs even if startup fails halfway.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    runner = BackgroundTaskRunner()
    app.state.settings = settings
    app.state.background_tasks = runner
    try:
        settings.ensure_directories()
        logger.info("Storage directories initialized")
        _validate_sqlite_path(settings)

        db = Database(settings)
        app.state.db = db
        await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        client = await HttpClientPool.get_client(
            timeout=settings.remote.request_timeout,
            user_agent=settings.remote.user_agent,
        )
        service = build_catalog_service(settings, db, client, runner)
        app.state.catalog_service = service

        await load_catalog(service, runner, settings)
        logger.info("Application startup complete", extra=service.status())

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        # 1. Background tasks (mirror pushes, late load)
        try:
            await runner.shutdown(timeout=settings.observability.shutdown_timeout)
            logger.info("Background tasks stopped: %s", runner.get_status())
        except Exception as e:
            logger.exception("Error stopping background tasks: %s", e)

        # 2. HTTP client pool
        try:
            await HttpClientPool.close()
            logger.info("HTTP client pool closed")
        except Exception as e:
            logger.exception("Error closing HTTP client pool: %s", e)

        # 3. Database
        try:
            if hasattr(app.state, "db"):
                await app.state.db.close()
                logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)
