"""Bounded-redirect HTTP fetching.

Hey future me - Drive's download endpoint answers with a chain of 302/303 hops
(uc?export=download -> drive.usercontent.google.com -> ...). We walk the chain by hand so
that:
- the hop count is capped (a redirect loop becomes ExternalServiceError, not a hang)
- every final response is checked for markup. Drive serves non-public files as an HTML
  login/interstitial page with status 200, which must become RemoteAccessDeniedError
  instead of a 4 KB "mp3" that mutagen chokes on later.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

import httpx

from muzak.domain.exceptions import (
    ExternalServiceError,
    RemoteAccessDeniedError,
    UnreadableAudioError,
)

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
MARKUP_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

_FILENAME_STAR = re.compile(r"filename\*\s*=\s*[^']*''([^;]+)", re.IGNORECASE)
_FILENAME = re.compile(r'filename\s*=\s*"?([^";]+)"?', re.IGNORECASE)


@dataclass(frozen=True)
class FetchedFile:
    """A response body streamed to disk."""

    path: Path
    content_type: str
    size: int
    filename: str | None = None


def filename_from_disposition(header: str | None) -> str | None:
    """Extract the file name from a Content-Disposition header (RFC 5987 form first)."""
    if not header:
        return None
    match = _FILENAME_STAR.search(header)
    if match:
        return unquote(match.group(1).strip())
    match = _FILENAME.search(header)
    if match:
        return match.group(1).strip()
    return None


def is_markup(content_type: str) -> bool:
    """Check whether a content type is an HTML page."""
    lowered = content_type.lower()
    return any(markup in lowered for markup in MARKUP_CONTENT_TYPES)


class BoundedRedirectFetcher:
    """GET with a manual, capped redirect loop."""

    def __init__(self, client: httpx.AsyncClient, max_redirects: int = 5) -> None:
        self._client = client
        self.max_redirects = max_redirects

    async def fetch_text(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Fetch a text resource (HTML page, JSON listing).

        Raises:
            ExternalServiceError: Non-200 final status or too many redirects
            httpx.HTTPError: Network failure or timeout
        """
        current = httpx.URL(url, params=params)
        for _hop in range(self.max_redirects + 1):
            response = await self._client.get(current, headers=headers)
            if response.status_code in REDIRECT_STATUSES:
                current = self._next_hop(response, url)
                continue
            if response.status_code != 200:
                raise ExternalServiceError(
                    f"GET {url} failed with HTTP {response.status_code}"
                )
            return response.text
        raise ExternalServiceError(
            f"Too many redirects (more than {self.max_redirects}) fetching {url}"
        )

    async def fetch_to_file(
        self,
        url: str,
        dest: Path,
        *,
        remote_id: str,
        headers: dict[str, str] | None = None,
    ) -> FetchedFile:
        """Stream a binary resource to dest, following at most max_redirects hops.

        dest is removed again if anything goes wrong.

        Raises:
            RemoteAccessDeniedError: Final response is markup (not publicly shared)
            ExternalServiceError: Non-200 final status or too many redirects
            UnreadableAudioError: Empty body
            httpx.HTTPError: Network failure or timeout
        """
        current = httpx.URL(url)
        try:
            for hop in range(self.max_redirects + 1):
                async with self._client.stream("GET", current, headers=headers) as response:
                    if response.status_code in REDIRECT_STATUSES:
                        current = self._next_hop(response, url)
                        logger.debug(f"Redirect {hop + 1} for {remote_id} → {current.host}")
                        continue
                    return await self._write_body(response, dest, remote_id)
            raise ExternalServiceError(
                f"Too many redirects (more than {self.max_redirects}) downloading {remote_id}"
            )
        except BaseException:
            dest.unlink(missing_ok=True)
            raise

    async def _write_body(
        self, response: httpx.Response, dest: Path, remote_id: str
    ) -> FetchedFile:
        if response.status_code != 200:
            raise ExternalServiceError(
                f"Download of {remote_id} failed with HTTP {response.status_code}"
            )
        content_type = response.headers.get("content-type", "")
        if is_markup(content_type):
            raise RemoteAccessDeniedError(remote_id, content_type)

        size = 0
        with dest.open("wb") as fh:
            async for chunk in response.aiter_bytes():
                fh.write(chunk)
                size += len(chunk)
        if size == 0:
            raise UnreadableAudioError(remote_id, "remote file is empty")

        return FetchedFile(
            path=dest,
            content_type=content_type,
            size=size,
            filename=filename_from_disposition(
                response.headers.get("content-disposition")
            ),
        )

    @staticmethod
    def _next_hop(response: httpx.Response, original_url: str) -> httpx.URL:
        location = response.headers.get("location")
        if not location:
            raise ExternalServiceError(
                f"Redirect without Location header while fetching {original_url}"
            )
        return response.url.join(location)
