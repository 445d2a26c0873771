"""HTTP client for the mirror instance.

The mirror is another deployment of this service: pushes go to its import endpoint,
restores read its export endpoint. Nothing here retries; the next mutation pushes the
latest snapshot anyway.
"""

import logging

import httpx

from muzak.config import Settings
from muzak.domain.entities import CatalogSnapshot
from muzak.domain.exceptions import ExternalServiceError
from muzak.domain.ports import IMirrorClient
from muzak.infrastructure.observability.logging import get_correlation_id

logger = logging.getLogger(__name__)

IMPORT_PATH = "/api/music/import-data"
EXPORT_PATH = "/api/music/export-data"


class HttpMirrorClient(IMirrorClient):
    """Talks to a mirror instance over its public catalog endpoints."""

    def __init__(
        self, client: httpx.AsyncClient, base_url: str, timeout: float = 60.0
    ) -> None:
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        correlation_id = get_correlation_id()
        return {"X-Correlation-ID": correlation_id} if correlation_id else {}

    async def push(self, snapshot: CatalogSnapshot) -> None:
        """POST the full snapshot to the mirror's import endpoint.

        Raises:
            ExternalServiceError: Mirror answered with a non-2xx status
            httpx.HTTPError: Network failure or timeout
        """
        response = await self._client.post(
            f"{self.base_url}{IMPORT_PATH}",
            json=snapshot.to_dict(),
            headers=self._headers(),
            timeout=self.timeout,
        )
        if not response.is_success:
            raise ExternalServiceError(
                f"Mirror rejected snapshot with HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )

    async def fetch(self) -> CatalogSnapshot:
        """GET the mirror's snapshot (read-only).

        Raises:
            ExternalServiceError: Non-2xx status or unparseable body
            httpx.HTTPError: Network failure or timeout
        """
        response = await self._client.get(
            f"{self.base_url}{EXPORT_PATH}",
            headers=self._headers(),
            timeout=self.timeout,
        )
        if not response.is_success:
            raise ExternalServiceError(
                f"Mirror export failed with HTTP {response.status_code}"
            )
        try:
            return CatalogSnapshot.from_dict(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            raise ExternalServiceError(f"Mirror export returned invalid data: {e}") from e


def create_mirror_client(
    settings: Settings, client: httpx.AsyncClient
) -> HttpMirrorClient | None:
    """Mirror client for the configured mirror, or None when replication is off."""
    mirror_url = settings.replication.mirror_url
    if not mirror_url:
        logger.info("No mirror configured, replication disabled")
        return None
    if settings.is_self_mirror():
        logger.warning(
            f"Mirror URL {mirror_url} points at this instance, replication disabled"
        )
        return None
    return HttpMirrorClient(client, mirror_url, timeout=settings.replication.push_timeout)
