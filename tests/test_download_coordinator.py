import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeBackend, FakeDownloader, FakeProbe

from vidsub_cli.core.download_coordinator import ASSEMBLY_PROGRESS, DownloadCoordinator
from vidsub_cli.exceptions import (
    DownloadCancelledError,
    DownloadFailedError,
    InvalidSourceError,
)
from vidsub_cli.media.assembler import AssetAssembler
from vidsub_cli.media.manifest import ManifestResolver
from vidsub_cli.models.media import Candidate, MediaKind
from vidsub_cli.models.stats import DownloadStats

PLAYLIST = "#EXTM3U\n" + "".join(f"#EXTINF:2.0,\nseg{i}.ts\n" for i in range(5))
STREAM_URL = "https://example.com/v/index.m3u8"


def _coordinator(downloader, backend=None, stats=None):
    return DownloadCoordinator(
        downloader=downloader,
        resolver=ManifestResolver(downloader),
        assembler=AssetAssembler(FakeProbe(), backend or FakeBackend()),
        stats=stats,
    )


def _direct_downloader(body=b"mp4 data"):
    downloader = MagicMock()

    async def download_file(url, destination, on_progress=None):
        Path(destination).write_bytes(body)
        if on_progress:
            on_progress(0.5)
            on_progress(1.0)
        return Path(destination)

    downloader.download_file = AsyncMock(side_effect=download_file)
    return downloader


@pytest.mark.parametrize("url", ["ftp://example.com/a.mp4", "not a url", "/local/file.mp4"])
def test_invalid_urls_are_rejected(tmp_path, url):
    coordinator = _coordinator(_direct_downloader())

    with pytest.raises(InvalidSourceError):
        asyncio.run(coordinator.download(Candidate(url=url), tmp_path / "a.mp4"))
    assert coordinator.active_operations() == {}


@pytest.mark.parametrize("kind", [MediaKind.MP4, MediaKind.WEBM, MediaKind.UNKNOWN])
def test_non_stream_kinds_are_fetched_directly(tmp_path, kind):
    downloader = _direct_downloader()
    coordinator = _coordinator(downloader)
    candidate = Candidate(url="https://example.com/clip", kind=kind)
    reports = []

    path = asyncio.run(coordinator.download(candidate, tmp_path / "a.mp4", reports.append))

    assert path.read_bytes() == b"mp4 data"
    downloader.download_file.assert_awaited_once()
    assert reports == [0.5, 1.0]
    assert coordinator.progress(candidate.id) is None


def test_stream_is_resolved_fetched_and_assembled(tmp_path):
    downloader = FakeDownloader(pages={STREAM_URL: PLAYLIST})
    backend = FakeBackend()
    stats = DownloadStats()
    coordinator = _coordinator(downloader, backend, stats)
    candidate = Candidate(url=STREAM_URL, kind=MediaKind.HLS)
    reports = []

    path = asyncio.run(coordinator.download(candidate, tmp_path / "v.mp4", reports.append))

    assert path.read_bytes() == b"mp4"
    assert backend.compositions[0].offsets() == [0.0, 2.0, 4.0, 6.0, 8.0]
    assert reports[-2:] == [ASSEMBLY_PROGRESS, 1.0]
    assert reports == sorted(reports)
    assert [p.name for p in tmp_path.iterdir()] == ["v.mp4"]
    assert stats.segments_failed == 0


def test_stream_with_skipped_segments_counts_failures(tmp_path):
    downloader = FakeDownloader(
        pages={STREAM_URL: PLAYLIST}, failing=["https://example.com/v/seg4.ts"]
    )
    stats = DownloadStats()
    coordinator = DownloadCoordinator(
        downloader=downloader,
        resolver=ManifestResolver(downloader),
        assembler=AssetAssembler(FakeProbe(), FakeBackend()),
        max_failure_rate=0.5,
        stats=stats,
    )

    asyncio.run(
        coordinator.download(Candidate(url=STREAM_URL, kind=MediaKind.HLS), tmp_path / "v.mp4")
    )

    assert stats.segments_failed == 1


def test_failed_download_clears_registry(tmp_path):
    downloader = MagicMock()
    downloader.download_file = AsyncMock(side_effect=DownloadFailedError("HTTP 500"))
    coordinator = _coordinator(downloader)

    with pytest.raises(DownloadFailedError):
        asyncio.run(
            coordinator.download(
                Candidate(url="https://example.com/a.mp4"), tmp_path / "a.mp4", operation_id="op"
            )
        )
    assert coordinator.progress("op") is None


def test_cancel_stops_progress_and_removes_entry(tmp_path):
    reports = []

    async def scenario():
        started = asyncio.Event()

        async def slow_download(url, destination, on_progress=None):
            on_progress(0.1)
            started.set()
            try:
                await asyncio.sleep(3600)
            finally:
                on_progress(0.5)

        downloader = MagicMock()
        downloader.download_file = slow_download
        coordinator = _coordinator(downloader)
        candidate = Candidate(url="https://example.com/a.mp4")

        task = asyncio.create_task(
            coordinator.download(candidate, tmp_path / "a.mp4", reports.append, "op1")
        )
        await started.wait()
        assert coordinator.progress("op1") == 0.1

        assert coordinator.cancel("op1") is True
        assert coordinator.progress("op1") is None
        with pytest.raises(DownloadCancelledError):
            await task
        return coordinator

    coordinator = asyncio.run(scenario())

    assert reports == [0.1]
    assert coordinator.active_operations() == {}
    assert coordinator._cancelled == set()
    assert coordinator.cancel("op1") is False


def test_cancelled_stream_removes_segment_directory(tmp_path):
    async def scenario():
        downloader = FakeDownloader(
            pages={STREAM_URL: PLAYLIST}, block_on=["https://example.com/v/seg2.ts"]
        )
        coordinator = _coordinator(downloader)
        candidate = Candidate(url=STREAM_URL, kind=MediaKind.HLS)
        task = asyncio.create_task(
            coordinator.download(candidate, tmp_path / "v.mp4", operation_id="stream")
        )
        await downloader.blocked.wait()
        assert list(tmp_path.glob(".segments-*"))

        coordinator.cancel("stream")
        with pytest.raises(DownloadCancelledError):
            await task

    asyncio.run(scenario())

    assert list(tmp_path.iterdir()) == []


def test_duplicate_operation_id_is_refused(tmp_path):
    async def scenario():
        started = asyncio.Event()

        async def slow_download(url, destination, on_progress=None):
            started.set()
            await asyncio.sleep(3600)

        downloader = MagicMock()
        downloader.download_file = slow_download
        coordinator = _coordinator(downloader)
        candidate = Candidate(url="https://example.com/a.mp4")

        task = asyncio.create_task(
            coordinator.download(candidate, tmp_path / "a.mp4", operation_id="same")
        )
        await started.wait()
        with pytest.raises(ValueError):
            await coordinator.download(candidate, tmp_path / "b.mp4", operation_id="same")
        coordinator.cancel("same")
        with pytest.raises(DownloadCancelledError):
            await task

    asyncio.run(scenario())


def test_candidates_are_deduplicated_by_url():
    coordinator = _coordinator(_direct_downloader())

    assert coordinator.add_candidate(Candidate(url="https://example.com/a.mp4"))
    assert not coordinator.add_candidate(Candidate(url="https://example.com/a.mp4"))
    assert coordinator.add_candidate(Candidate(url="https://example.com/b.mp4"))
    assert [c.url for c in coordinator.candidates] == [
        "https://example.com/a.mp4",
        "https://example.com/b.mp4",
    ]

    coordinator.clear_candidates()
    assert coordinator.candidates == []


def test_download_and_register_adds_asset(catalog):
    stats = DownloadStats()
    coordinator = _coordinator(_direct_downloader(b"12345678"), stats=stats)
    candidate = Candidate(url="https://example.com/media/talk.mp4", page_title="A Talk")

    asset = asyncio.run(coordinator.download_and_register(candidate, catalog))

    assert asset.title == "A Talk"
    assert asset.file_size == 8
    assert Path(asset.local_path).parent == catalog.videos_dir
    assert catalog.get(asset.id) == asset
    assert stats.videos_downloaded == 1
    assert stats.total_size_downloaded == 8


def test_failed_registration_removes_downloaded_file(catalog):
    coordinator = _coordinator(_direct_downloader())
    catalog.add_downloaded_video = AsyncMock(side_effect=OSError("disk full"))
    candidate = Candidate(url="https://example.com/media/talk.mp4")

    with pytest.raises(OSError, match="disk full"):
        asyncio.run(coordinator.download_and_register(candidate, catalog))

    assert list(catalog.videos_dir.iterdir()) == []
    assert catalog.videos == []
