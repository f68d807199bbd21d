"""
The orchestrator for downloads: picks a strategy per candidate, tracks the
progress of every operation in flight and handles cancellation.
"""

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse

from vidsub_cli.exceptions import DownloadCancelledError, InvalidSourceError
from vidsub_cli.media import (
    AssetAssembler,
    Downloader,
    FFmpegBackend,
    FFprobeProbe,
    ManifestResolver,
    SegmentFetcher,
)
from vidsub_cli.media.segments import remove_dir
from vidsub_cli.models.config import AppConfig
from vidsub_cli.models.media import Asset, Candidate, MediaKind
from vidsub_cli.models.stats import DownloadStats
from vidsub_cli.storage.catalog import VideoCatalog

log = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

ASSEMBLY_PROGRESS = 0.85


def validate_source_url(url: str) -> None:
    """Raises InvalidSourceError unless `url` is an absolute http(s) URL."""
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidSourceError(url) from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidSourceError(url)


class DownloadCoordinator:
    """
    Runs downloads and is the only component that touches the progress
    registry.

    Registry access is guarded by a mutex and never spans an await, so
    readers always see a consistent mapping.
    """

    def __init__(
        self,
        downloader: Downloader,
        resolver: ManifestResolver,
        assembler: AssetAssembler,
        max_failure_rate: float = 0.10,
        segment_download_share: float = 0.8,
        stats: DownloadStats | None = None,
    ):
        self.downloader = downloader
        self.resolver = resolver
        self.assembler = assembler
        self.max_failure_rate = max_failure_rate
        self.segment_download_share = segment_download_share
        self.stats = stats

        self._registry: dict[str, float] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancelled: set[str] = set()
        self._registry_lock = threading.Lock()

        self._candidates: list[Candidate] = []

    @classmethod
    def from_config(
        cls, config: AppConfig, stats: DownloadStats | None = None
    ) -> "DownloadCoordinator":
        downloader = Downloader(
            max_attempts=config.max_attempts,
            request_timeout=config.request_timeout,
            user_agent=config.user_agent,
        )
        return cls(
            downloader=downloader,
            resolver=ManifestResolver(downloader, config.max_manifest_depth),
            assembler=AssetAssembler(
                FFprobeProbe(config.ffprobe_path), FFmpegBackend(config.ffmpeg_path)
            ),
            max_failure_rate=config.max_failure_rate,
            segment_download_share=config.segment_download_share,
            stats=stats,
        )

    # -- Candidate intake -------------------------------------------------

    @property
    def candidates(self) -> list[Candidate]:
        return list(self._candidates)

    def add_candidate(self, candidate: Candidate) -> bool:
        """Adds a detected video. Returns False if its URL is already known."""
        if any(c.url == candidate.url for c in self._candidates):
            return False
        self._candidates.append(candidate)
        return True

    def clear_candidates(self) -> None:
        self._candidates.clear()

    # -- Progress registry ------------------------------------------------

    def progress(self, operation_id: str) -> float | None:
        with self._registry_lock:
            return self._registry.get(operation_id)

    def active_operations(self) -> dict[str, float]:
        with self._registry_lock:
            return dict(self._registry)

    def _register(self, operation_id: str) -> None:
        with self._registry_lock:
            if operation_id in self._registry:
                raise ValueError(f"Operation '{operation_id}' is already running")
            self._registry[operation_id] = 0.0
            self._cancelled.discard(operation_id)

    def _unregister(self, operation_id: str) -> None:
        with self._registry_lock:
            self._registry.pop(operation_id, None)
            self._tasks.pop(operation_id, None)
            self._cancelled.discard(operation_id)

    def _progress_reporter(
        self, operation_id: str, on_progress: ProgressCallback | None
    ) -> ProgressCallback:
        def report(fraction: float) -> None:
            fraction = min(max(fraction, 0.0), 1.0)
            with self._registry_lock:
                if operation_id not in self._registry:
                    return
                self._registry[operation_id] = fraction
            if on_progress:
                on_progress(fraction)

        return report

    # -- Downloads ----------------------------------------------------------

    async def download(
        self,
        candidate: Candidate,
        destination: Path,
        on_progress: ProgressCallback | None = None,
        operation_id: str | None = None,
    ) -> Path:
        """
        Downloads `candidate` to `destination` and returns the local path.

        HLS candidates are resolved, fetched segment by segment and assembled;
        every other kind, including unknown, is fetched directly.

        Raises:
            InvalidSourceError: If the candidate URL is not an http(s) URL.
            DownloadCancelledError: If `cancel` was called for this operation.
            VidsubError: Any typed download, playlist or export failure.
        """
        validate_source_url(candidate.url)
        operation_id = operation_id or candidate.id
        report = self._progress_reporter(operation_id, on_progress)

        self._register(operation_id)
        try:
            task = asyncio.create_task(
                self._run(candidate, Path(destination), report),
                name=f"download-{operation_id}",
            )
            with self._registry_lock:
                self._tasks[operation_id] = task
            try:
                return await task
            except asyncio.CancelledError:
                if operation_id in self._cancelled and not _current_task_cancelling():
                    raise DownloadCancelledError(operation_id) from None
                raise
        finally:
            self._unregister(operation_id)

    def cancel(self, operation_id: str) -> bool:
        """
        Stops an operation in flight. Its registry entry is removed at once, so
        no progress is reported for it afterwards; the running fetch removes
        its own temporary files as it unwinds.
        """
        with self._registry_lock:
            known = self._registry.pop(operation_id, None) is not None
            task = self._tasks.pop(operation_id, None)
            if known:
                self._cancelled.add(operation_id)
        if task and not task.done():
            task.cancel()
        if known:
            log.info(f"Cancelled download {operation_id}")
        return known

    async def _run(
        self, candidate: Candidate, destination: Path, report: ProgressCallback
    ) -> Path:
        if candidate.kind == MediaKind.HLS:
            return await self._download_stream(candidate.url, destination, report)
        return await self.downloader.download_file(candidate.url, destination, report)

    async def _download_stream(
        self, url: str, destination: Path, report: ProgressCallback
    ) -> Path:
        segment_urls = await self.resolver.resolve(url)
        log.debug(f"Downloading {len(segment_urls)} segments from {url}")

        work_dir = destination.parent / f".segments-{uuid.uuid4().hex[:12]}"
        fetcher = SegmentFetcher(
            self.downloader, self.max_failure_rate, self.segment_download_share
        )
        try:
            segment_files = await fetcher.fetch_all(segment_urls, work_dir, report)
            if self.stats and fetcher.failed_count:
                await self.stats.record_segment_failures(fetcher.failed_count)
            report(ASSEMBLY_PROGRESS)
            await self.assembler.assemble(segment_files, destination)
        finally:
            await remove_dir(work_dir)

        report(1.0)
        return destination

    async def download_and_register(
        self,
        candidate: Candidate,
        catalog: VideoCatalog,
        on_progress: ProgressCallback | None = None,
        operation_id: str | None = None,
    ) -> Asset:
        """Downloads a candidate into the catalog's video folder and records it."""
        destination = catalog.video_path(f"{uuid.uuid4()}.mp4")
        local_path = await self.download(
            candidate, destination, on_progress, operation_id
        )
        try:
            file_size = (await asyncio.to_thread(local_path.stat)).st_size
            asset = Asset(
                original_url=candidate.url,
                local_path=str(local_path),
                title=candidate.display_name,
                file_size=file_size,
            )
            await catalog.add_downloaded_video(asset)
        except BaseException:
            # Only files the catalog records may stay in the videos folder.
            await asyncio.to_thread(local_path.unlink, missing_ok=True)
            raise
        if self.stats:
            await self.stats.record_download(file_size)
        return asset


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return bool(task and task.cancelling())
