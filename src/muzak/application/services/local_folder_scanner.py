"""Recursive scan of a server-local music directory."""

import asyncio
import logging
from pathlib import Path

from muzak.application.services.batch_ingestion import (
    BatchIngestionCoordinator,
    FileCandidate,
    IngestionBatch,
)
from muzak.domain.exceptions import ValidationException
from muzak.domain.value_objects import is_audio_filename

logger = logging.getLogger(__name__)


def _list_directory(directory: Path) -> tuple[list[Path], list[Path]]:
    """Split a directory's children into (audio files, sub-directories), name-sorted."""
    files: list[Path] = []
    dirs: list[Path] = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name.lower()):
        if entry.is_dir():
            dirs.append(entry)
        elif entry.is_file() and is_audio_filename(entry.name):
            files.append(entry)
    return files, dirs


class LocalFolderScanner:
    """Walks a directory tree and extracts every audio file in it.

    Hey future me - each directory's files are extracted as one batch, then the batches
    of its sub-directories are merged in (bottom-up). The root's batch therefore holds the
    whole tree, deduplicated and grouped exactly like an upload would be. Nothing is
    merged into the catalog here; CatalogService commits the returned batch.

    Logical paths are relative to the root's PARENT, so the scanned folder's own name is
    part of every path ("My Album/CD2/01.flac") and feeds the album/disc fallbacks.
    """

    def __init__(self, coordinator: BatchIngestionCoordinator, batch_size: int = 5) -> None:
        self._coordinator = coordinator
        self.batch_size = batch_size

    async def scan(self, root: Path) -> IngestionBatch:
        """Scan a directory tree.

        Raises:
            ValidationException: root doesn't exist, isn't a directory or can't be read
        """
        root = Path(root).expanduser().resolve()
        if not await asyncio.to_thread(root.is_dir):
            raise ValidationException(f"Not a directory: {root}")
        try:
            await asyncio.to_thread(_list_directory, root)
        except OSError as e:
            raise ValidationException(f"Cannot read directory {root}: {e}") from e

        logger.info(f"Scanning music folder {root}")
        batch = await self._scan_directory(root, root.parent, set())
        logger.info(
            f"Scanned {root}: {len(batch)} tracks, {len(batch.albums)} albums, "
            f"{batch.failed} failed"
        )
        return batch

    async def _scan_directory(
        self, directory: Path, base: Path, visited: set[Path]
    ) -> IngestionBatch:
        real = directory.resolve()
        if real in visited:  # symlink loop
            return IngestionBatch()
        visited.add(real)
        try:
            files, dirs = await asyncio.to_thread(_list_directory, directory)
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            return IngestionBatch()

        candidates = [
            FileCandidate(logical_path=f.relative_to(base).as_posix(), path=f)
            for f in files
        ]
        batch = await self._coordinator.collect(candidates, batch_size=self.batch_size)
        for sub_directory in dirs:
            batch.merge(await self._scan_directory(sub_directory, base, visited))
        return batch
