"""Best-effort replication of the catalog to a mirror instance."""

import asyncio
import logging

import httpx

from muzak.application.workers.background_tasks import BackgroundTaskRunner
from muzak.domain.entities import CatalogSnapshot
from muzak.domain.exceptions import ExternalServiceError
from muzak.domain.ports import IMirrorClient
from muzak.infrastructure.persistence.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)


class ReplicationSync:
    """Pushes snapshots to the mirror after mutations; pulls one on an empty start.

    Hey future me - mirror_client is None when no mirror is configured OR the mirror URL
    is this instance (see Settings.is_self_mirror()); every method is a no-op then.
    The snapshot is captured when the push is SCHEDULED, so a push always carries the
    state right after the mutation that triggered it. No retries: the next mutation
    pushes the newest state anyway.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        mirror_client: IMirrorClient | None,
        runner: BackgroundTaskRunner,
        push_timeout: float = 60.0,
    ) -> None:
        self._repository = repository
        self._mirror_client = mirror_client
        self._runner = runner
        self._push_timeout = push_timeout

    @property
    def enabled(self) -> bool:
        return self._mirror_client is not None

    def schedule_push(self, reason: str) -> asyncio.Task[None] | None:
        """Push the current snapshot in a detached task."""
        if self._mirror_client is None:
            logger.debug(f"Replication disabled, not pushing after {reason}")
            return None
        snapshot = self._repository.snapshot()
        return self._runner.spawn(
            self._push(self._mirror_client, snapshot, reason), name=f"mirror-push:{reason}"
        )

    async def _push(
        self, client: IMirrorClient, snapshot: CatalogSnapshot, reason: str
    ) -> None:
        counts = snapshot.counts()
        # httpx timeouts apply per connect/read/write phase; this bounds the whole push
        try:
            async with asyncio.timeout(self._push_timeout):
                await client.push(snapshot)
        except TimeoutError:
            logger.warning(
                f"Mirror push after {reason} failed: no answer within "
                f"{self._push_timeout:.0f}s",
                extra=counts,
            )
            return
        except (ExternalServiceError, httpx.HTTPError) as e:
            logger.warning(
                f"Mirror push after {reason} failed: {type(e).__name__}: {e}",
                extra=counts,
            )
            return
        logger.info(
            f"Pushed snapshot to mirror after {reason} "
            f"({counts['albums']} albums, {counts['tracks']} tracks)",
            extra=counts,
        )

    async def fetch_mirror_snapshot(self) -> CatalogSnapshot | None:
        """Read the mirror's snapshot for a restore; None when unavailable or empty."""
        if self._mirror_client is None:
            return None
        try:
            async with asyncio.timeout(self._push_timeout):
                snapshot = await self._mirror_client.fetch()
        except TimeoutError:
            logger.warning(f"Mirror snapshot not received within {self._push_timeout:.0f}s")
            return None
        except (ExternalServiceError, httpx.HTTPError) as e:
            logger.warning(f"Could not read mirror snapshot: {type(e).__name__}: {e}")
            return None
        if snapshot.is_empty:
            logger.info("Mirror snapshot is empty, nothing to restore")
            return None
        return snapshot
