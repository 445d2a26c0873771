"""Shared HTTP client pool for connection reuse across integrations.

Hey future me - Drive listing, Drive downloads and mirror pushes all share ONE
httpx.AsyncClient so keep-alive connections to googleapis.com / drive.google.com are
reused across a crawl. Redirects are NOT followed by the client: Drive downloads bounce
through several hosts and BoundedRedirectFetcher walks those hops itself (hop limit +
content-type check per hop).

Usage:
    client = await HttpClientPool.get_client()

Don't forget HttpClientPool.close() at app shutdown (see lifecycle.py)!
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Singleton HTTP client pool for connection reuse."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 60.0
    DEFAULT_MAX_KEEPALIVE: ClassVar[int] = 10
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 20

    @classmethod
    def _ensure_lock(cls) -> asyncio.Lock:
        # Lazy: asyncio.Lock must be created inside the running loop
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(
        cls,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> httpx.AsyncClient:
        """Get the shared HTTP client instance.

        Config params only apply on the FIRST call.

        Args:
            timeout: Request timeout in seconds (default: 60.0)
            user_agent: User-Agent header sent with every request

        Returns:
            Shared httpx.AsyncClient instance
        """
        async with cls._ensure_lock():
            if cls._client is None:
                effective_timeout = timeout or cls.DEFAULT_TIMEOUT
                headers = {"User-Agent": user_agent} if user_agent else None
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(effective_timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=cls.DEFAULT_MAX_KEEPALIVE,
                        max_connections=cls.DEFAULT_MAX_CONNECTIONS,
                    ),
                    headers=headers,
                    follow_redirects=False,
                )
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs, max_conn=%d)",
                    effective_timeout,
                    cls.DEFAULT_MAX_CONNECTIONS,
                )
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client and release all connections."""
        async with cls._ensure_lock():
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("HTTP client pool closed")
