"""Google Drive share client: link parsing, folder listing and downloads."""

import logging
import re
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx

from muzak.domain.exceptions import (
    DomainException,
    RemoteListingError,
    ValidationException,
)
from muzak.domain.ports import IFolderListingStrategy, RemoteEntry
from muzak.infrastructure.integrations.http_fetch import (
    BoundedRedirectFetcher,
    FetchedFile,
)

logger = logging.getLogger(__name__)

DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"

_ID_CHARS = r"[A-Za-z0-9_-]"

# (pattern, is_folder) - first match wins
SHARE_LINK_PATTERNS: tuple[tuple[re.Pattern[str], bool], ...] = (
    (re.compile(rf"/file/d/({_ID_CHARS}+)"), False),
    (re.compile(rf"[?&]id=({_ID_CHARS}+)"), False),
    (re.compile(rf"/(?:drive/)?folders/({_ID_CHARS}+)"), True),
    (re.compile(rf"^({_ID_CHARS}{{20,}})$"), False),
)


@dataclass(frozen=True)
class RemoteLink:
    """A parsed share link."""

    id: str
    is_folder: bool


def parse_share_link(url: str) -> RemoteLink:
    """Resolve a share link (or bare id) to a remote id.

    Examples:
        https://drive.google.com/file/d/<id>/view       -> file
        https://drive.google.com/open?id=<id>           -> file
        https://drive.google.com/drive/folders/<id>     -> folder
        <bare id of 20+ chars>                          -> file

    Raises:
        ValidationException: Nothing recognizable in the link
    """
    candidate = (url or "").strip()
    for pattern, is_folder in SHARE_LINK_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return RemoteLink(id=match.group(1), is_folder=is_folder)
    raise ValidationException(
        "Unrecognized Google Drive link. Accepted forms: "
        "https://drive.google.com/file/d/<id>/view, "
        "https://drive.google.com/open?id=<id>, "
        "https://drive.google.com/drive/folders/<id>, or a bare file id"
    )


class RemoteDriveClient:
    """Lists and downloads publicly shared Drive files."""

    def __init__(
        self,
        fetcher: BoundedRedirectFetcher,
        strategies: Sequence[IFolderListingStrategy],
        temp_dir: Path,
    ) -> None:
        self._fetcher = fetcher
        self._strategies = list(strategies)
        self._temp_dir = temp_dir

    async def list_folder(self, folder_id: str) -> list[RemoteEntry]:
        """List folder children with the first strategy that returns anything.

        Raises:
            RemoteListingError: Every strategy failed or came back empty
        """
        for strategy in self._strategies:
            if not strategy.is_available():
                logger.debug(f"Listing strategy {strategy.name} unavailable, skipping")
                continue
            try:
                entries = await strategy.list(folder_id)
            except (DomainException, httpx.HTTPError) as e:
                logger.warning(f"Listing strategy {strategy.name} failed for {folder_id}: {e}")
                continue
            if entries:
                logger.info(
                    f"Listed {len(entries)} entries in folder {folder_id} via {strategy.name}"
                )
                return entries
            logger.info(f"Listing strategy {strategy.name} found nothing in {folder_id}")

        raise RemoteListingError(folder_id)

    # Hey future me - the temp file NEVER outlives the with-block, whether extraction
    # succeeded or blew up. Temp names are random: the remote id must not leak into
    # anything path-based (disc detection would happily read "cd3" inside an id).
    @asynccontextmanager
    async def download(self, file_id: str) -> AsyncIterator[FetchedFile]:
        """Download one file to a temporary location for the duration of the block."""
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        dest = self._temp_dir / f"dl-{uuid.uuid4().hex}.part"
        fetched = await self._fetcher.fetch_to_file(
            DOWNLOAD_URL.format(file_id=file_id), dest, remote_id=file_id
        )
        try:
            yield fetched
        finally:
            fetched.path.unlink(missing_ok=True)
