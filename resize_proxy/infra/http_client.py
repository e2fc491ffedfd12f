# resize_proxy/infra/http_client.py
"""
Shared aiohttp session for source image downloads.

One ``ClientSession`` per process, created lazily on first use inside the
running event loop so every request reuses the same connection pool.

Timeouts and the pool size come from settings; the per-request timeout
passed by ImageFetcher overrides the session default.

Call ``close_all_sessions()`` once during application shutdown.
"""
from __future__ import annotations

import aiohttp

from resize_proxy.infra.logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = "resize-proxy/1.0"

_fetcher_session: aiohttp.ClientSession | None = None


def _build_fetcher_session() -> aiohttp.ClientSession:
    from resize_proxy.config import settings

    connector = aiohttp.TCPConnector(
        limit=settings.fetch_pool_limit,
        ttl_dns_cache=300,
        keepalive_timeout=30,
        enable_cleanup_closed=True,
    )
    logger.debug(f"Fetcher session created (pool limit={settings.fetch_pool_limit})")
    return aiohttp.ClientSession(
        connector=connector,
        headers={"User-Agent": USER_AGENT},
        timeout=aiohttp.ClientTimeout(
            total=settings.fetch_timeout_seconds,
            connect=settings.fetch_connect_timeout_seconds,
        ),
    )


def get_fetcher_session() -> aiohttp.ClientSession:
    """Session for source image downloads (created on first call)."""
    global _fetcher_session
    if _fetcher_session is None or _fetcher_session.closed:
        _fetcher_session = _build_fetcher_session()
    return _fetcher_session


async def close_all_sessions() -> None:
    """Close the fetcher session if one is open."""
    global _fetcher_session
    session, _fetcher_session = _fetcher_session, None
    if session is not None and not session.closed:
        await session.close()
        logger.debug("Fetcher session closed")
