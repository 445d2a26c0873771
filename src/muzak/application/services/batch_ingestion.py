"""Batch-concurrent ingestion: extract files in bounded batches, merge into the catalog.

Hey future me - ingestion is two steps and every entry point (uploads, server paths,
Drive folders) goes through both:

1. collect(): candidates -> IngestionBatch. Fixed-size batches run concurrently with
   asyncio.gather, each extraction in a worker thread (mutagen + Pillow are blocking).
   The next batch starts only when the previous one finished. A bad file is logged and
   counted, it never aborts the batch.
2. commit(): IngestionBatch -> CatalogRepository.merge_batch() -> IngestionReport.

Remote candidates already in the catalog are skipped BEFORE downloading (that's what makes
re-crawling a folder cheap); merge_batch() checks again after extraction because the
catalog may have changed while we were downloading.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePath

import httpx

from muzak.application.services.metadata_extractor import (
    ExtractionResult,
    MetadataExtractor,
)
from muzak.domain.entities import Album, Artist, Track
from muzak.domain.exceptions import DomainException, UnreadableAudioError
from muzak.domain.value_objects import (
    VARIOUS_ARTISTS,
    album_grouping_key,
    artist_id,
    display_album_artist,
)
from muzak.infrastructure.integrations.drive_client import RemoteDriveClient
from muzak.infrastructure.persistence.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)

VARIOUS_ARTISTS_ID = artist_id(VARIOUS_ARTISTS)

# Logical name for a single shared file whose name Drive didn't tell us
UNNAMED_REMOTE_FILE = "Untitled"


@dataclass(frozen=True)
class FileCandidate:
    """A file waiting to be extracted.

    Local candidates carry a path on disk. Remote candidates carry a remote id and are
    downloaded right before extraction. logical_path is the path the user knows the file
    by (upload name, path below the scanned folder, Drive folder names); title/album
    fallbacks and the disc number come from it.
    """

    logical_path: str
    path: Path | None = None
    remote_id: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.remote_id is not None


def grouping_key(result: ExtractionResult) -> str:
    """Same-run album grouping key of an extraction result."""
    track = result.track
    return album_grouping_key(track.album_id, track.album_artist_id, result.compilation)


class IngestionBatch:
    """Extraction results of one run, deduplicated by track id, with album partials."""

    def __init__(self) -> None:
        self.entries: list[ExtractionResult] = []
        self.failed = 0
        self.skipped = 0
        self._track_ids: set[str] = set()
        self._albums: dict[str, Album] = {}

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def albums(self) -> list[Album]:
        """Album partials of this run (trackCount counts this run's tracks only)."""
        return list(self._albums.values())

    def add(self, result: ExtractionResult) -> bool:
        """Add one result; False (and counted as skipped) if its track id is already in."""
        track = result.track
        if track.id in self._track_ids:
            logger.debug(f"Duplicate track in run, skipping: {track.id}")
            self.skipped += 1
            return False
        self._track_ids.add(track.id)
        self.entries.append(result)

        key = grouping_key(result)
        partial = self._albums.get(key)
        if partial is None:
            self._albums[key] = _new_album_partial(result)
            return True

        partial.track_count += 1
        if not partial.cover_art and result.cover_art:
            partial.cover_art = result.cover_art
        if partial.year is None and track.year is not None:
            partial.year = track.year
        if not partial.genre and track.genre:
            partial.genre = track.genre
        if track.disc_number and track.disc_number > (partial.cd_count or 0):
            partial.cd_count = track.disc_number
        return True

    def merge(self, other: "IngestionBatch") -> None:
        """Fold a child batch (e.g. a sub-directory) into this one."""
        for result in other.entries:
            self.add(result)
        self.failed += other.failed
        self.skipped += other.skipped

    def album_partial(self, result: ExtractionResult) -> Album:
        """Album partial the result was grouped into."""
        key = grouping_key(result)
        partial = self._albums.get(key)
        if partial is None:
            partial = _new_album_partial(result)
            self._albums[key] = partial
        return partial


def _new_album_partial(result: ExtractionResult) -> Album:
    track = result.track
    return Album(
        id=track.album_id,
        title=track.album,
        artist=display_album_artist(track.album_artist, result.compilation),
        artist_id=VARIOUS_ARTISTS_ID if result.compilation else track.album_artist_id,
        year=track.year,
        genre=track.genre,
        track_count=1,
        cover_art=result.cover_art,
        cd_count=track.disc_number,
    )


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    artists: list[Artist] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    @property
    def tracks_count(self) -> int:
        return len(self.tracks)

    @property
    def artists_count(self) -> int:
        return len(self.artists)


class BatchIngestionCoordinator:
    """Runs extraction in bounded concurrent batches and merges into the catalog."""

    def __init__(
        self,
        repository: CatalogRepository,
        extractor: MetadataExtractor,
        drive_client: RemoteDriveClient | None = None,
    ) -> None:
        self._repository = repository
        self._extractor = extractor
        self._drive_client = drive_client

    async def ingest(
        self,
        candidates: Sequence[FileCandidate],
        *,
        batch_size: int,
        remote_folder_id: str | None = None,
        force_compilation: bool = False,
        strict: bool = False,
    ) -> IngestionReport:
        """Extract all candidates and merge them into the catalog.

        strict=True re-raises per-file errors instead of counting them (single-file
        ingestion reports WHY its only file failed).
        """
        batch = await self.collect(
            candidates,
            batch_size=batch_size,
            force_compilation=force_compilation,
            strict=strict,
        )
        return self.commit(batch, remote_folder_id=remote_folder_id)

    async def collect(
        self,
        candidates: Sequence[FileCandidate],
        *,
        batch_size: int,
        force_compilation: bool = False,
        strict: bool = False,
    ) -> IngestionBatch:
        """Extract candidates in batches of batch_size into an IngestionBatch."""
        batch = IngestionBatch()
        pending: list[FileCandidate] = []
        for candidate in candidates:
            if candidate.remote_id and self._repository.has_remote_file(
                candidate.remote_id
            ):
                batch.skipped += 1
                continue
            pending.append(candidate)

        if batch.skipped:
            logger.info(f"Skipping {batch.skipped} remote files already in the catalog")

        size = max(1, batch_size)
        for start in range(0, len(pending), size):
            chunk = pending[start : start + size]
            results = await asyncio.gather(
                *(
                    self._process(candidate, force_compilation, strict)
                    for candidate in chunk
                )
            )
            for result in results:
                if result is None:
                    batch.failed += 1
                else:
                    batch.add(result)
            logger.debug(
                f"Batch {start // size + 1}: {sum(r is not None for r in results)}"
                f"/{len(chunk)} extracted"
            )

        return batch

    def commit(
        self, batch: IngestionBatch, *, remote_folder_id: str | None = None
    ) -> IngestionReport:
        """Merge a collected batch into the catalog."""
        outcome = self._repository.merge_batch(batch, origin_folder_id=remote_folder_id)
        report = IngestionReport(
            albums=outcome.albums,
            tracks=outcome.tracks,
            artists=outcome.artists,
            skipped=batch.skipped + outcome.skipped,
            failed=batch.failed,
        )
        logger.info(
            f"Ingestion finished: {report.tracks_count} new tracks, "
            f"{len(report.albums)} albums, {report.artists_count} artists, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    async def _process(
        self, candidate: FileCandidate, force_compilation: bool, strict: bool = False
    ) -> ExtractionResult | None:
        """Extract one candidate; failures are logged and reported as None."""
        try:
            if candidate.is_remote:
                return await self._process_remote(candidate, force_compilation)
            if candidate.path is None:
                raise UnreadableAudioError(candidate.logical_path, "no file on disk")
            return await self._extract(
                candidate.path, candidate.logical_path, force_compilation, None
            )
        except DomainException as e:
            if strict:
                raise
            logger.warning(f"Skipping '{candidate.logical_path}': {e.message}")
        except (httpx.HTTPError, OSError) as e:
            if strict:
                raise
            logger.warning(
                f"Skipping '{candidate.logical_path}' after transfer error: "
                f"{type(e).__name__}: {e}"
            )
        except Exception:
            logger.exception(f"Unexpected error ingesting '{candidate.logical_path}'")
        return None

    async def _process_remote(
        self, candidate: FileCandidate, force_compilation: bool
    ) -> ExtractionResult:
        if self._drive_client is None:
            raise UnreadableAudioError(candidate.logical_path, "no remote client")
        remote_id = candidate.remote_id or ""
        async with self._drive_client.download(remote_id) as fetched:
            logical = candidate.logical_path or fetched.filename or UNNAMED_REMOTE_FILE
            return await self._extract(fetched.path, logical, force_compilation, remote_id)

    async def _extract(
        self,
        path: Path,
        logical_path: str,
        force_compilation: bool,
        remote_id: str | None,
    ) -> ExtractionResult:
        result = await asyncio.to_thread(
            self._extractor.extract,
            path,
            logical_path=PurePath(logical_path),
            force_compilation=force_compilation,
            remote_id=remote_id,
        )
        if result is None:
            raise UnreadableAudioError(logical_path)
        return result
