"""Shared fixtures: fake extraction results and in-memory collaborators."""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path, PurePath
from unittest.mock import AsyncMock

import pytest

from muzak.application.services.batch_ingestion import BatchIngestionCoordinator
from muzak.application.services.catalog_service import CatalogService
from muzak.application.services.local_folder_scanner import LocalFolderScanner
from muzak.application.services.metadata_extractor import ExtractionResult
from muzak.application.services.remote_folder_crawler import RemoteFolderCrawler
from muzak.application.services.replication_sync import ReplicationSync
from muzak.application.workers.background_tasks import BackgroundTaskRunner
from muzak.config import IngestionSettings
from muzak.domain.entities import REMOTE_LOCATOR_PREFIX, CatalogSnapshot, Track
from muzak.domain.exceptions import RemoteListingError
from muzak.domain.ports import ICatalogStore, IMirrorClient
from muzak.domain.value_objects import (
    album_id,
    artist_id,
    disc_number_from_path,
    is_compilation,
    track_id,
)
from muzak.infrastructure.integrations.http_fetch import FetchedFile
from muzak.infrastructure.persistence.catalog_repository import CatalogRepository

ResultFactory = Callable[..., ExtractionResult]


def make_result(
    title: str,
    artist: str,
    album: str,
    *,
    album_artist: str | None = None,
    path: str | None = None,
    remote_id: str | None = None,
    cover: str | None = None,
    genre: str | None = None,
    force_compilation: bool = False,
) -> ExtractionResult:
    """Build what MetadataExtractor would return for a tagged file."""
    album_artist = album_artist or artist
    compilation = is_compilation(album_artist, force_compilation)
    local_path = path or f"/uploads/{title}.mp3"
    track = Track(
        id=track_id(artist, album, title),
        title=title,
        artist=artist,
        artist_id=artist_id(artist),
        album=album,
        album_id=album_id(album, album_artist, force_compilation),
        album_artist=album_artist,
        album_artist_id=artist_id(album_artist),
        duration=200,
        file_path=f"{REMOTE_LOCATOR_PREFIX}{remote_id}" if remote_id else local_path,
        genre=genre,
        google_drive_id=remote_id,
        disc_number=disc_number_from_path(local_path),
    )
    return ExtractionResult(track=track, cover_art=cover, compilation=compilation)


class FakeExtractor:
    """Stand-in for MetadataExtractor keyed by logical file name.

    Unknown names extract to None (unreadable file).
    """

    def __init__(self, results: dict[str, ExtractionResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[Path, str, bool, str | None]] = []

    def extract(
        self,
        path: Path,
        *,
        logical_path: str | PurePath | None = None,
        force_compilation: bool = False,
        remote_id: str | None = None,
    ) -> ExtractionResult | None:
        name = PurePath(logical_path or path).name
        self.calls.append((path, str(logical_path), force_compilation, remote_id))
        return self.results.get(name)


class FakeDriveClient:
    """Stand-in for RemoteDriveClient serving listings and downloads from memory."""

    def __init__(
        self,
        listings: dict[str, list] | None = None,
        tmp_dir: Path | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.listings = listings or {}
        self.errors = errors or {}
        self.tmp_dir = tmp_dir or Path(".")
        self.downloads: list[str] = []
        self.listed: list[str] = []

    async def list_folder(self, folder_id: str) -> list:
        self.listed.append(folder_id)
        if folder_id not in self.listings:
            raise RemoteListingError(folder_id)
        return self.listings[folder_id]

    @asynccontextmanager
    async def download(self, file_id: str) -> AsyncIterator[FetchedFile]:
        self.downloads.append(file_id)
        if file_id in self.errors:
            raise self.errors[file_id]
        path = self.tmp_dir / f"dl-{file_id}.part"
        path.write_bytes(b"audio")
        try:
            yield FetchedFile(
                path=path, content_type="audio/mpeg", size=5, filename=f"{file_id}.mp3"
            )
        finally:
            path.unlink(missing_ok=True)


class InMemoryCatalogStore(ICatalogStore):
    """ICatalogStore keeping the last saved snapshot in memory.

    load_error makes load() raise; load_gate makes load() wait until the event is set.
    """

    def __init__(self, snapshot: CatalogSnapshot | None = None) -> None:
        self.snapshot = snapshot or CatalogSnapshot()
        self.saves = 0
        self.fail_with: Exception | None = None
        self.load_error: Exception | None = None
        self.load_gate: asyncio.Event | None = None

    async def load(self) -> CatalogSnapshot:
        if self.load_gate is not None:
            await self.load_gate.wait()
        if self.load_error is not None:
            raise self.load_error
        return self.snapshot

    async def save(self, snapshot: CatalogSnapshot) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.saves += 1
        self.snapshot = snapshot


@pytest.fixture
def result_factory() -> ResultFactory:
    """Factory for fake extraction results."""
    return make_result


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    """Extractor returning results registered in `.results` by file name."""
    return FakeExtractor()


@pytest.fixture
def fake_drive(tmp_path: Path) -> FakeDriveClient:
    """Drive client serving `.listings` and writing downloads below tmp_path."""
    return FakeDriveClient(tmp_dir=tmp_path)


@pytest.fixture
def memory_store() -> InMemoryCatalogStore:
    """Catalog store keeping the last saved snapshot in memory."""
    return InMemoryCatalogStore()


@pytest.fixture
def mirror_client() -> AsyncMock:
    """Mirror client double; push/fetch are AsyncMocks."""
    client = AsyncMock(spec=IMirrorClient)
    client.fetch.return_value = CatalogSnapshot()
    return client


@pytest.fixture
def make_catalog_service(
    fake_extractor: FakeExtractor,
    fake_drive: FakeDriveClient,
    memory_store: InMemoryCatalogStore,
) -> Callable[..., CatalogService]:
    """Factory wiring a CatalogService around the fakes.

    Pass mirror=<client> to enable replication, runner=<runner> to inspect pushes.
    The catalog starts as an already loaded empty store unless loaded=False, which
    leaves it waiting for the startup load.
    """

    def _make(
        mirror: IMirrorClient | None = None,
        runner: BackgroundTaskRunner | None = None,
        repository: CatalogRepository | None = None,
        loaded: bool = True,
    ) -> CatalogService:
        if repository is None:
            repository = CatalogRepository()
            if loaded:
                repository.replace_all(CatalogSnapshot())
        runner = runner or BackgroundTaskRunner()
        coordinator = BatchIngestionCoordinator(
            repository, fake_extractor, fake_drive  # type: ignore[arg-type]
        )
        return CatalogService(
            repository=repository,
            store=memory_store,
            coordinator=coordinator,
            scanner=LocalFolderScanner(coordinator, batch_size=2),
            crawler=RemoteFolderCrawler(fake_drive),  # type: ignore[arg-type]
            replication=ReplicationSync(repository, mirror, runner),
            settings=IngestionSettings(local_batch_size=2, remote_batch_size=2),
        )

    return _make
