"""Catalog service: the external operations of the ingestion engine.

Hey future me - this is the ONLY place that wires the pieces together for a request:

    entry point -> candidates -> BatchIngestionCoordinator -> CatalogRepository
                -> SqlCatalogStore.save() -> ReplicationSync.schedule_push()

Mutating operations hold one asyncio.Lock for their whole duration. Two uploads
arriving together would otherwise interleave their merges between awaits (download of
request A, merge of request B, ...) and the second save could persist a catalog the
first one hasn't finished counting. Reads never take the lock.

Persistence failures are logged and swallowed on purpose: the in-memory catalog is
already updated and keeps serving, the next successful save writes everything anyway.

Saves (and mirror pushes) only happen once the stored catalog has been adopted. The
store is rewritten wholesale, so saving a catalog that never saw the stored rows would
delete them. Until the load lands the save is deferred; after a FAILED load the service
is degraded and never writes the store.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from muzak.application.services.batch_ingestion import (
    UNNAMED_REMOTE_FILE,
    BatchIngestionCoordinator,
    FileCandidate,
    IngestionReport,
)
from muzak.application.services.local_folder_scanner import LocalFolderScanner
from muzak.application.services.remote_folder_crawler import RemoteFolderCrawler
from muzak.application.services.replication_sync import ReplicationSync
from muzak.config import IngestionSettings
from muzak.domain.entities import Album, Artist, CatalogSnapshot, Genre, Track
from muzak.domain.exceptions import (
    EntityNotFoundException,
    UnreadableAudioError,
    ValidationException,
)
from muzak.domain.ports import ICatalogStore
from muzak.domain.value_objects import is_audio_filename
from muzak.infrastructure.integrations.drive_client import parse_share_link
from muzak.infrastructure.persistence.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded file already stored on disk.

    filename is the client-side name, possibly with folders ("Album/CD2/01.mp3" when a
    whole directory was dropped); it's the file's logical path.
    """

    filename: str
    path: Path


@dataclass
class IngestionResult:
    """Response of every ingestion entry point."""

    success: bool
    message: str
    albums: list[Album] = field(default_factory=list)
    tracks_count: int = 0
    artists_count: int = 0
    skipped: int = 0
    failed: int = 0

    @classmethod
    def from_report(cls, report: IngestionReport, message: str) -> "IngestionResult":
        return cls(
            success=True,
            message=message,
            albums=report.albums,
            tracks_count=report.tracks_count,
            artists_count=report.artists_count,
            skipped=report.skipped,
            failed=report.failed,
        )


@dataclass
class DeletionResult:
    """Response of an album deletion."""

    success: bool
    message: str
    deleted_albums: int = 0
    deleted_tracks: int = 0
    pruned_artists: int = 0


def _summary(report: IngestionReport) -> str:
    message = f"{len(report.albums)} album(s) added, {report.tracks_count} track(s) added"
    if report.skipped:
        message += f", {report.skipped} already present"
    if report.failed:
        message += f", {report.failed} unreadable"
    return message


class CatalogService:
    """Ingestion, deletion and replication operations on the catalog."""

    def __init__(
        self,
        repository: CatalogRepository,
        store: ICatalogStore,
        coordinator: BatchIngestionCoordinator,
        scanner: LocalFolderScanner,
        crawler: RemoteFolderCrawler,
        replication: ReplicationSync,
        settings: IngestionSettings | None = None,
    ) -> None:
        self._repository = repository
        self._store = store
        self._coordinator = coordinator
        self._scanner = scanner
        self._crawler = crawler
        self._replication = replication
        self._settings = settings or IngestionSettings()
        self._lock = asyncio.Lock()
        self._load_error: str | None = None
        self._save_deferred = False

    # =========================================================================
    # INGESTION
    # =========================================================================

    async def ingest_local(self, files: Sequence[UploadedFile]) -> IngestionResult:
        """Ingest a batch of uploaded files.

        Uploads that don't end up as a catalog track (not audio, unreadable, duplicate)
        are deleted from the upload directory; accepted ones stay there and are served
        from it.

        Raises:
            ValidationException: No files, or no audio file among them
        """
        if not files:
            raise ValidationException("No files provided")
        audio = [f for f in files if is_audio_filename(f.filename)]
        if not audio:
            self._discard_uploads(files, keep=set())
            raise ValidationException("None of the uploaded files is an audio file")

        logger.info(f"Ingesting {len(audio)} uploaded files ({len(files)} received)")
        candidates = [FileCandidate(logical_path=f.filename, path=f.path) for f in audio]
        async with self._lock:
            report = await self._coordinator.ingest(
                candidates, batch_size=self._settings.local_batch_size
            )
            await self._after_ingestion(report, "upload")

        self._discard_uploads(files, keep={t.file_path for t in report.tracks})
        return IngestionResult.from_report(report, _summary(report))

    async def ingest_local_path(self, folder_path: str) -> IngestionResult:
        """Ingest every audio file below a server-local directory.

        Raises:
            ValidationException: Empty path, or not a readable directory
        """
        if not folder_path or not folder_path.strip():
            raise ValidationException("Folder path is required")

        async with self._lock:
            batch = await self._scanner.scan(Path(folder_path.strip()))
            report = self._coordinator.commit(batch)
            await self._after_ingestion(report, "folder scan")
        return IngestionResult.from_report(report, _summary(report))

    async def ingest_remote(
        self, url: str, force_compilation: bool = False
    ) -> IngestionResult:
        """Ingest a shared Drive file or folder.

        Raises:
            ValidationException: Unparseable link, or a folder without audio files
            RemoteListingError: The folder couldn't be listed
            RemoteAccessDeniedError: The single file isn't shared publicly
            ExternalServiceError: The single file download failed upstream
            UnreadableAudioError: The single file isn't readable audio
        """
        link = parse_share_link(url)
        if link.is_folder:
            return await self._ingest_remote_folder(link.id, force_compilation)
        return await self._ingest_remote_file(link.id, force_compilation)

    async def _ingest_remote_folder(
        self, folder_id: str, force_compilation: bool
    ) -> IngestionResult:
        async with self._lock:
            candidates = await self._crawler.crawl(folder_id)
            if not candidates:
                raise ValidationException("No audio files found in the shared folder")

            existing = self._repository.albums_from_folder(folder_id)
            new = [
                c
                for c in candidates
                if not (c.remote_id and self._repository.has_remote_file(c.remote_id))
            ]
            if not new:
                logger.info(f"Every file of folder {folder_id} is already in the catalog")
                return IngestionResult(
                    success=True,
                    message=(
                        "Every file of this folder is already in the library, "
                        "nothing new to add"
                    ),
                    albums=existing,
                    skipped=len(candidates),
                )

            report = await self._coordinator.ingest(
                candidates,
                batch_size=self._settings.remote_batch_size,
                remote_folder_id=folder_id,
                force_compilation=force_compilation,
            )
            await self._after_ingestion(report, "remote folder")

        if existing:
            message = (
                f"{report.tracks_count} new track(s) added to an existing folder, "
                f"{report.skipped} already present"
            )
        else:
            message = _summary(report)
        result = IngestionResult.from_report(report, message)
        if not result.albums:
            result.albums = existing
        return result

    async def _ingest_remote_file(
        self, file_id: str, force_compilation: bool
    ) -> IngestionResult:
        candidate = FileCandidate(logical_path="", remote_id=file_id)
        async with self._lock:
            batch = await self._coordinator.collect(
                [candidate],
                batch_size=1,
                force_compilation=force_compilation,
                strict=True,
            )
            report = self._coordinator.commit(batch)
            await self._after_ingestion(report, "remote file")

        if report.tracks:
            track = report.tracks[0]
            return IngestionResult.from_report(
                report, f'Album "{track.album}" added from Google Drive'
            )

        if batch.entries:
            track = batch.entries[0].track
        else:
            known = self._repository.track_by_remote_id(file_id)
            if known is None:
                raise UnreadableAudioError(UNNAMED_REMOTE_FILE)
            track = known
        album = self._repository.get_album(track.album_id)
        return IngestionResult(
            success=True,
            message=(
                f'This track is already in the library: "{track.album}" - "{track.title}"'
            ),
            albums=[album] if album else [],
            skipped=1,
        )

    # =========================================================================
    # DELETION / REPLICATION CONTRACT
    # =========================================================================

    async def delete_albums(self, album_ids: Sequence[str]) -> DeletionResult:
        """Delete albums and their tracks, pruning artists left without any.

        Raises:
            ValidationException: No album ids given
        """
        ids = [a for a in album_ids if a]
        if not ids:
            raise ValidationException("A non-empty list of album ids is required")

        async with self._lock:
            outcome = self._repository.delete_albums(ids)
            if outcome.deleted_albums and await self._persist():
                self._replication.schedule_push("album deletion")

        return DeletionResult(
            success=True,
            message=f"{outcome.deleted_albums} album(s) deleted",
            deleted_albums=outcome.deleted_albums,
            deleted_tracks=outcome.deleted_tracks,
            pruned_artists=outcome.pruned_artists,
        )

    def export_snapshot(self) -> CatalogSnapshot:
        return self._repository.snapshot()

    # Hey future me - NO push here. The mirror pushes to us through this endpoint; pushing
    # back would bounce the snapshot between two instances that mirror each other.
    async def import_snapshot(self, snapshot: CatalogSnapshot) -> dict[str, int]:
        """Merge a snapshot by id and persist it.

        Raises:
            EmptySnapshotRejectedError: All-empty snapshot over a non-empty catalog
        """
        logger.info("Importing snapshot", extra=snapshot.counts())
        async with self._lock:
            counts = self._repository.import_snapshot(snapshot)
            await self._persist()
        return counts

    # =========================================================================
    # READ
    # =========================================================================

    def list_albums(self) -> list[Album]:
        return self._repository.list_albums()

    def list_tracks(self) -> list[Track]:
        return self._repository.list_tracks()

    def list_artists(self) -> list[Artist]:
        return self._repository.list_artists()

    def list_genres(self) -> list[Genre]:
        return self._repository.list_genres()

    def album_tracks(self, album_id: str) -> list[Track]:
        """Tracks of one album.

        Raises:
            EntityNotFoundException: Unknown album id
        """
        if self._repository.get_album(album_id) is None:
            raise EntityNotFoundException("Album", album_id)
        return self._repository.tracks_for_album(album_id)

    def status(self) -> dict[str, object]:
        return {"loaded": self._repository.loaded, **self._repository.counts()}

    @property
    def load_state(self) -> str:
        """Startup load state: loaded, pending (still running) or failed."""
        if self._repository.loaded:
            return "loaded"
        return "failed" if self._load_error is not None else "pending"

    @property
    def load_error(self) -> str | None:
        return self._load_error

    @property
    def replication_enabled(self) -> bool:
        return self._replication.enabled

    # =========================================================================
    # STARTUP
    # =========================================================================

    async def load(self) -> CatalogSnapshot:
        """Read the stored catalog (doesn't touch the repository)."""
        return await self._store.load()

    async def adopt_loaded(self, snapshot: CatalogSnapshot) -> None:
        """Swap a loaded snapshot into the repository, keeping records created meanwhile.

        Changes made while the load was pending are saved (and pushed) now.
        """
        async with self._lock:
            self._repository.adopt_loaded(snapshot)
            self._load_error = None
            logger.info("Catalog loaded", extra=self._repository.counts())
            if self._save_deferred and await self._persist():
                self._replication.schedule_push("late catalog load")

    def mark_load_failed(self, error: Exception) -> None:
        """Record a failed startup load; the store is never written afterwards."""
        self._load_error = f"{type(error).__name__}: {error}"
        logger.error(
            f"Stored catalog could not be loaded, saves disabled: {self._load_error}"
        )

    async def restore_from_mirror(self) -> bool:
        """Adopt the mirror's snapshot when the local catalog is empty.

        Read-only towards the mirror. Returns True when something was restored.
        """
        if not self._repository.loaded:
            return False
        if not self._replication.enabled or not self._repository.is_empty:
            return False
        snapshot = await self._replication.fetch_mirror_snapshot()
        if snapshot is None:
            return False
        async with self._lock:
            if not self._repository.is_empty:
                logger.info("Catalog filled while fetching mirror snapshot, not restoring")
                return False
            self._repository.replace_all(snapshot)
            await self._persist()
        logger.info("Restored catalog from mirror", extra=snapshot.counts())
        return True

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _after_ingestion(self, report: IngestionReport, reason: str) -> None:
        if not report.tracks:
            return
        if await self._persist():
            self._replication.schedule_push(reason)

    async def _persist(self) -> bool:
        """Save the catalog; False when the save was skipped (catalog not loaded)."""
        if not self._repository.loaded:
            self._save_deferred = True
            if self._load_error is not None:
                logger.warning(
                    f"Not saving catalog, the stored catalog failed to load: "
                    f"{self._load_error}"
                )
            else:
                logger.warning("Stored catalog still loading, save deferred")
            return False

        self._save_deferred = False
        snapshot = self._repository.snapshot()
        try:
            await self._store.save(snapshot)
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                f"Failed to persist catalog, in-memory state kept: {type(e).__name__}: {e}",
                exc_info=True,
                extra=snapshot.counts(),
            )
        return True

    @staticmethod
    def _discard_uploads(files: Sequence[UploadedFile], keep: set[str]) -> None:
        for uploaded in files:
            if str(uploaded.path) in keep:
                continue
            try:
                uploaded.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove upload {uploaded.path}: {e}")
