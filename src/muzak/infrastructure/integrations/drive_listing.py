"""Remote folder listing strategies for Google Drive shares.

Hey future me - Drive has no way to list a public folder without an API key. We try the
v3 API first when a key is configured, then fall back to scraping the folder's web page.
The scraper is BEST-EFFORT: Drive renders the listing with JavaScript and the embedded
data shapes change without notice, so it runs a cascade of patterns and the first one
that finds anything wins. Zero matches is ambiguous (empty folder vs. layout change) and
RemoteDriveClient reports it as a listing failure.
"""

import html
import json
import logging
import re
from typing import NamedTuple

from muzak.domain.exceptions import ExternalServiceError
from muzak.domain.ports import IFolderListingStrategy, RemoteEntry
from muzak.infrastructure.integrations.http_fetch import BoundedRedirectFetcher

logger = logging.getLogger(__name__)

DRIVE_API_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_FOLDER_PAGE_URL = "https://drive.google.com/drive/folders/{folder_id}"

MIN_REMOTE_ID_LENGTH = 20

_AUDIO_EXT = r"\.(?:mp3|m4a|flac|wav|ogg|aac|wma)"
_ID = r"[A-Za-z0-9_-]{20,}"
_LONG_ID = r"[A-Za-z0-9_-]{25,}"

PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class DriveApiListingStrategy(IFolderListingStrategy):
    """Lists folder children through the Drive v3 files endpoint (needs an API key)."""

    PAGE_SIZE = 1000

    def __init__(self, fetcher: BoundedRedirectFetcher, api_key: str | None) -> None:
        self._fetcher = fetcher
        self._api_key = api_key.strip() if api_key else None

    @property
    def name(self) -> str:
        return "drive-api"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def list(self, folder_id: str) -> list[RemoteEntry]:
        """List all non-trashed children, following nextPageToken."""
        entries: list[RemoteEntry] = []
        page_token: str | None = None
        while True:
            params = {
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "nextPageToken,files(id,name,mimeType,size)",
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
                "pageSize": str(self.PAGE_SIZE),
                "key": self._api_key or "",
            }
            if page_token:
                params["pageToken"] = page_token

            body = await self._fetcher.fetch_text(DRIVE_API_FILES_URL, params=params)
            try:
                payload = json.loads(body)
            except json.JSONDecodeError as e:
                raise ExternalServiceError(
                    f"Drive API returned invalid JSON for folder {folder_id}"
                ) from e

            for item in payload.get("files") or []:
                if not item.get("id"):
                    continue
                size = item.get("size")
                entries.append(
                    RemoteEntry(
                        id=item["id"],
                        name=item.get("name") or item["id"],
                        mime_type=item.get("mimeType"),
                        size=int(size) if size else None,
                    )
                )

            page_token = payload.get("nextPageToken")
            if not page_token:
                return entries


class ScrapePattern(NamedTuple):
    """One heuristic: a regex with named groups ``id`` and ``name``."""

    name: str
    regex: re.Pattern[str]


# Order matters: specific shapes first, the loose "id near a file name" shapes last.
SCRAPE_PATTERNS: tuple[ScrapePattern, ...] = (
    ScrapePattern(
        "json-literal",
        re.compile(rf'\[null,null,"(?P<name>[^"]+{_AUDIO_EXT})"[^\]]*"(?P<id>{_ID})"'),
    ),
    ScrapePattern(
        "data-id-attribute",
        re.compile(
            rf'data-id="(?P<id>{_ID})"[^>]*>[\s\S]{{0,500}}?(?P<name>[^<>"]+{_AUDIO_EXT})',
            re.IGNORECASE,
        ),
    ),
    ScrapePattern(
        "script-id-then-name",
        re.compile(rf'"(?P<id>{_ID})"[^"]*"[^"]*"(?P<name>[^"]+{_AUDIO_EXT})"'),
    ),
    ScrapePattern(
        "file-link",
        re.compile(
            rf'drive\.google\.com/file/d/(?P<id>{_ID})[^"]*"[^>]*>(?P<name>[^<]+{_AUDIO_EXT})',
            re.IGNORECASE,
        ),
    ),
    ScrapePattern(
        "aria-label",
        re.compile(
            rf'(?:aria-label|title)="(?P<name>[^"]*{_AUDIO_EXT})"[^>]*data-id="(?P<id>{_ID})"',
            re.IGNORECASE,
        ),
    ),
    ScrapePattern(
        "serialized-array",
        re.compile(rf'"(?P<id>{_LONG_ID})"[^"]{{0,200}}"(?P<name>[^"]{{1,100}}{_AUDIO_EXT})"'),
    ),
)


def scrape_entries(
    page: str,
    folder_id: str,
    patterns: tuple[ScrapePattern, ...] = SCRAPE_PATTERNS,
) -> list[RemoteEntry]:
    """Run the pattern cascade over a folder page; first pattern with matches wins.

    Results are deduplicated by id; ids shorter than 20 chars and the folder's own id
    are dropped.
    """
    for pattern in patterns:
        seen: dict[str, RemoteEntry] = {}
        for match in pattern.regex.finditer(page):
            remote_id = match.group("id")
            name = html.unescape(match.group("name")).strip()
            if (
                len(remote_id) < MIN_REMOTE_ID_LENGTH
                or remote_id == folder_id
                or not name
                or remote_id in seen
            ):
                continue
            seen[remote_id] = RemoteEntry(id=remote_id, name=name)
        if seen:
            logger.debug(
                f"Scrape pattern '{pattern.name}' found {len(seen)} files in {folder_id}"
            )
            return list(seen.values())
    return []


class HtmlScrapeListingStrategy(IFolderListingStrategy):
    """Lists audio files by scraping the public folder page (no key needed).

    Only files are found, sub-folders are invisible to the scraper.
    """

    def __init__(
        self,
        fetcher: BoundedRedirectFetcher,
        patterns: tuple[ScrapePattern, ...] = SCRAPE_PATTERNS,
    ) -> None:
        self._fetcher = fetcher
        self._patterns = patterns

    @property
    def name(self) -> str:
        return "html-scrape"

    def is_available(self) -> bool:
        return True

    async def list(self, folder_id: str) -> list[RemoteEntry]:
        page = await self._fetcher.fetch_text(
            DRIVE_FOLDER_PAGE_URL.format(folder_id=folder_id), headers=PAGE_HEADERS
        )
        entries = scrape_entries(page, folder_id, self._patterns)
        if not entries:
            logger.warning(
                f"No files recognized on folder page {folder_id} "
                f"({len(page)} chars); folder empty or page layout changed"
            )
        return entries
