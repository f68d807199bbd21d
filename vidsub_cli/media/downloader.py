"""
Handles the low-level downloading of files over HTTP: streamed single-file
downloads with coalesced progress, and one-shot reads for playlists and
stream segments.
"""

import asyncio
import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiohttp

from vidsub_cli.exceptions import DownloadFailedError
from vidsub_cli.models.config import DEFAULT_USER_AGENT

log = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(
    request_timeout: float = 60.0, user_agent: str = DEFAULT_USER_AGENT
) -> aiohttp.ClientSession:
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
            limit=16,
            limit_per_host=8,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=15, sock_read=request_timeout
        )
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )
        log.debug(f"Created download pool with read timeout {request_timeout}s")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


def _check_status(response: aiohttp.ClientResponse) -> None:
    if not 200 <= response.status < 300:
        raise DownloadFailedError(
            f"Server returned HTTP {response.status}"
            + (f" ({response.reason})" if response.reason else "")
        )


class Downloader:
    """A low-level file downloader with retry logic for transport errors."""

    CHUNK_SIZE = 262144  # 256 KB
    PROGRESS_STEP = 0.01

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        request_timeout: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: aiohttp.ClientSession | None = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.request_timeout = request_timeout
        self.user_agent = user_agent
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool(self.request_timeout, self.user_agent)

    async def _with_retries(self, label: str, operation):
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Attempt {attempt}/{self.max_attempts} for '{label}' failed: "
                    f"{e!r}."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        if isinstance(last_exception, asyncio.TimeoutError):
            raise DownloadFailedError("Request timed out") from last_exception
        raise DownloadFailedError(
            str(last_exception) or type(last_exception).__name__
        ) from last_exception

    async def download_file(
        self,
        url: str,
        destination_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """
        Streams a URL to `destination_path`.

        The body goes to a temporary file beside the destination which replaces
        it only once complete, so the destination is never left half-written.
        """
        destination_path = Path(destination_path)
        temp_path = destination_path.with_name(
            f"{destination_path.name}.{uuid.uuid4().hex[:8]}.part"
        )

        last_reported = 0.0

        async def _attempt() -> None:
            nonlocal last_reported
            session = await self._get_session()
            async with session.get(url, allow_redirects=True) as response:
                _check_status(response)
                expected = response.content_length or 0
                received = 0

                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(
                        self.CHUNK_SIZE
                    ):
                        await f.write(chunk)
                        received += len(chunk)
                        if expected > 0 and on_progress:
                            fraction = min(received / expected, 1.0)
                            if fraction - last_reported >= self.PROGRESS_STEP:
                                last_reported = fraction
                                on_progress(fraction)

        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            await self._with_retries(destination_path.name, _attempt)
            await asyncio.to_thread(os.replace, temp_path, destination_path)
        except OSError as e:
            raise DownloadFailedError(f"Could not write file: {e}") from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    log.debug(f"Could not remove temporary file {temp_path}")

        if on_progress and last_reported < 1.0:
            on_progress(1.0)
        return destination_path

    async def fetch_bytes(self, url: str) -> bytes:
        """Reads a whole (small) resource into memory."""

        async def _attempt() -> bytes:
            session = await self._get_session()
            async with session.get(url, allow_redirects=True) as response:
                _check_status(response)
                return await response.read()

        return await self._with_retries(url, _attempt)

    async def fetch_text(self, url: str) -> str:
        """Reads a text resource such as an HLS playlist."""
        data = await self.fetch_bytes(url)
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DownloadFailedError(f"Response from {url} is not UTF-8 text") from e
