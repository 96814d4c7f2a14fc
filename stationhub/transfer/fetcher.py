"""
The fetch capability: opens an HTTP byte stream for a build archive and exposes
its declared length before the body is read.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncContextManager, Protocol

import aiohttp

from stationhub.exceptions import TransferError

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_connections: int = 4) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections * 2,
            limit_per_host=max_connections,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        # Archives are already compressed; the byte count must match Content-Length.
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            auto_decompress=False,
            headers={"Accept-Encoding": "identity"},
        )
        log.debug(f"Created download pool with limit_per_host={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared download connection pool closed.")


class FetchResponse(Protocol):
    content_length: int | None

    def iter_chunks(self) -> AsyncIterator[bytes]: ...


class Fetcher(Protocol):
    """Anything able to open a byte stream for a URL."""

    def open(self, url: str) -> AsyncContextManager[FetchResponse]: ...

    async def close(self) -> None: ...


@dataclass
class HttpFetchResponse:
    response: aiohttp.ClientResponse
    content_length: int | None
    chunk_size: int

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.content.iter_chunked(self.chunk_size):
            yield chunk


class HttpFetcher:
    """Fetch capability backed by the shared aiohttp connection pool."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, max_connections: int = 4, chunk_size: int = CHUNK_SIZE):
        self.max_connections = max_connections
        self.chunk_size = chunk_size

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[HttpFetchResponse]:
        """
        Sends the request and yields once the response headers have arrived.

        Raises:
            TransferError: If the server answers with an error status.
            aiohttp.ClientError: On connection problems.
        """
        session = await get_connection_pool(self.max_connections)
        async with session.get(url, allow_redirects=True) as response:
            if response.status >= 400:
                raise TransferError(
                    f"Server answered HTTP {response.status} for '{url}'."
                )
            yield HttpFetchResponse(
                response=response,
                content_length=response.content_length,
                chunk_size=self.chunk_size,
            )

    async def close(self) -> None:
        await close_connection_pool()
