"""
Dataclass for tracking download session statistics.
"""

import asyncio
from dataclasses import dataclass, field


@dataclass
class DownloadStats:
    """Tracks counters for one CLI session."""

    videos_downloaded: int = 0
    videos_failed: int = 0
    videos_cancelled: int = 0
    videos_processed: int = 0
    processing_failed: int = 0
    segments_failed: int = 0
    total_size_downloaded: int = 0
    failures: list[str] = field(default_factory=list)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def record_download(self, size_bytes: int) -> None:
        async with self._lock:
            self.videos_downloaded += 1
            self.total_size_downloaded += size_bytes

    async def record_failure(self, label: str, error: Exception) -> None:
        async with self._lock:
            self.videos_failed += 1
            self.failures.append(f"{label}: {error}")

    async def record_cancelled(self) -> None:
        async with self._lock:
            self.videos_cancelled += 1

    async def record_segment_failures(self, count: int) -> None:
        async with self._lock:
            self.segments_failed += count

    async def record_processed(self) -> None:
        async with self._lock:
            self.videos_processed += 1

    async def record_processing_failure(self, label: str, error: Exception) -> None:
        async with self._lock:
            self.processing_failed += 1
            self.failures.append(f"{label}: {error}")
