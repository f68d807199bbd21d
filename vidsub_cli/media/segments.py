"""
Sequential download of HLS media segments with a bounded failure budget.
"""

import asyncio
import logging
import shutil
from collections.abc import Callable, Sequence
from pathlib import Path

import aiofiles

from vidsub_cli.exceptions import (
    DownloadFailedError,
    ManifestParsingError,
    SegmentDownloadError,
)
from vidsub_cli.media.downloader import Downloader

log = logging.getLogger(__name__)


def segment_filename(index: int) -> str:
    return f"segment_{index:05d}.ts"


async def remove_dir(path: Path) -> None:
    """Removes a working directory, ignoring errors."""
    await asyncio.to_thread(shutil.rmtree, path, True)


class SegmentFetcher:
    """
    Downloads segments one after another into numbered files.

    Fetching strictly in playlist order keeps the numbered files in the
    order the assembler needs, whatever the network latency of each request.
    """

    def __init__(
        self,
        downloader: Downloader,
        max_failure_rate: float = 0.10,
        download_share: float = 0.8,
    ):
        self.downloader = downloader
        self.max_failure_rate = max_failure_rate
        self.download_share = download_share
        self.failed_count = 0

    async def _fetch_one(self, url: str, path: Path) -> None:
        data = await self.downloader.fetch_bytes(url)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)

    async def fetch_all(
        self,
        segment_urls: Sequence[str],
        work_dir: Path,
        on_progress: Callable[[float], None] | None = None,
    ) -> list[Path]:
        """
        Downloads every segment into `work_dir`, returning the files that were
        retrieved, in playlist order.

        Raises:
            DownloadFailedError: If the share of failed segments exceeds
            `max_failure_rate`. `work_dir` is removed.
            SegmentDownloadError: If no segment could be retrieved, either by
            the end of the list or by the time the failure budget ran out.
            `work_dir` is removed.
        """
        total = len(segment_urls)
        if total == 0:
            raise ManifestParsingError("Failed to parse HLS playlist: no segments")

        work_dir.mkdir(parents=True, exist_ok=True)
        downloaded: list[Path] = []
        self.failed_count = 0

        try:
            for index, url in enumerate(segment_urls):
                segment_path = work_dir / segment_filename(index)
                try:
                    await self._fetch_one(url, segment_path)
                except (DownloadFailedError, OSError) as e:
                    self.failed_count += 1
                    log.debug(f"Failed to download segment {index}: {e}")
                    if self.failed_count / total > self.max_failure_rate:
                        if not downloaded:
                            raise SegmentDownloadError() from e
                        raise DownloadFailedError(
                            f"Too many segment failures ({self.failed_count}/{total})"
                        ) from e
                    continue

                downloaded.append(segment_path)
                if on_progress:
                    on_progress((index + 1) / total * self.download_share)

            if not downloaded:
                raise SegmentDownloadError()
        except BaseException:
            await remove_dir(work_dir)
            raise

        if self.failed_count:
            log.warning(
                f"[yellow]{self.failed_count}/{total} segments could not be "
                "downloaded and were skipped.[/yellow]"
            )
        return downloaded
