"""Recursive crawl of a shared Drive folder into file candidates."""

import logging

from muzak.application.services.batch_ingestion import FileCandidate
from muzak.domain.exceptions import RemoteListingError
from muzak.domain.value_objects import parse_disc_folder
from muzak.infrastructure.integrations.drive_client import RemoteDriveClient

logger = logging.getLogger(__name__)


class RemoteFolderCrawler:
    """Turns a Drive folder into FileCandidates, descending into disc folders.

    Hey future me - recursion rules:
    - "CD1", "Disc 2 - Bonus"... are disc groupings: always listed (any depth up to
      MAX_DEPTH), their name ends up in the logical path so the extractor assigns the disc
    - other folders directly below the root are listed too (albums split into oddly
      named sub-folders); anything deeper that isn't a disc folder is ignored
    Only the ROOT listing failing is fatal. A sub-folder that can't be listed is logged
    and the crawl continues with what it has.
    """

    MAX_DEPTH = 4

    def __init__(self, drive_client: RemoteDriveClient) -> None:
        self._drive_client = drive_client

    async def crawl(self, folder_id: str) -> list[FileCandidate]:
        """List every audio file reachable from the folder.

        Raises:
            RemoteListingError: The root folder couldn't be listed
        """
        candidates = await self._crawl(folder_id, (), 0)
        logger.info(f"Crawled folder {folder_id}: {len(candidates)} audio files")
        return candidates

    async def _crawl(
        self, folder_id: str, folders: tuple[str, ...], depth: int
    ) -> list[FileCandidate]:
        if depth == 0:
            entries = await self._drive_client.list_folder(folder_id)
        else:
            try:
                entries = await self._drive_client.list_folder(folder_id)
            except RemoteListingError as e:
                logger.warning(f"Skipping sub-folder {'/'.join(folders)}: {e.message}")
                return []

        candidates: list[FileCandidate] = []
        for entry in entries:
            if entry.is_folder:
                disc = parse_disc_folder(entry.name)
                if disc is None and depth > 0:
                    logger.debug(f"Not descending into nested folder '{entry.name}'")
                    continue
                if depth + 1 > self.MAX_DEPTH:
                    logger.warning(f"Folder nesting too deep at '{entry.name}', stopping")
                    continue
                candidates.extend(
                    await self._crawl(entry.id, (*folders, entry.name), depth + 1)
                )
            elif entry.is_audio:
                candidates.append(
                    FileCandidate(
                        logical_path="/".join((*folders, entry.name)),
                        remote_id=entry.id,
                    )
                )
            else:
                logger.debug(f"Ignoring non-audio entry '{entry.name}'")
        return candidates
