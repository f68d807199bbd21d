import asyncio
from pathlib import Path

import pytest

from vidsub_cli.exceptions import DownloadFailedError, ExportError
from vidsub_cli.media.assembler import Composition, SegmentInfo
from vidsub_cli.models.media import Asset, TranscriptSegment
from vidsub_cli.storage.catalog import VideoCatalog


class FakeDownloader:
    """Serves playlist text and segment bytes from memory."""

    def __init__(self, pages=None, failing=(), block_on=()):
        self.pages = pages or {}
        self.failing = set(failing)
        self.block_on = set(block_on)
        self.requested = []
        self.blocked = asyncio.Event()

    async def fetch_text(self, url):
        self.requested.append(url)
        if url not in self.pages:
            raise DownloadFailedError("Server returned HTTP 404")
        return self.pages[url]

    async def fetch_bytes(self, url):
        self.requested.append(url)
        if url in self.block_on:
            self.blocked.set()
            await asyncio.sleep(3600)
        if url in self.failing:
            raise DownloadFailedError("Server returned HTTP 503")
        return b"segment:" + url.encode()


class FakeProbe:
    def __init__(self, infos=None, default=SegmentInfo(2.0, True, True, "aac")):
        self.infos = infos or {}
        self.default = default

    async def probe(self, path):
        info = self.infos.get(Path(path).name, self.default)
        if isinstance(info, Exception):
            raise info
        return info


class FakeBackend:
    def __init__(self, fail=False):
        self.fail = fail
        self.compositions: list[Composition] = []

    async def export(self, composition, output):
        self.compositions.append(composition)
        if self.fail:
            raise ExportError("Failed to export video (ffmpeg rc=1): boom")
        Path(output).write_bytes(b"mp4")


class FakeTranscriber:
    def __init__(self, segments=None, error=None):
        self.segments = segments if segments is not None else [
            TranscriptSegment(start=0, end=3, text="你好"),
            TranscriptSegment(start=3, end=6, text="再见"),
        ]
        self.error = error
        self.paths = []

    async def transcribe(self, media_path, on_progress=None):
        self.paths.append(media_path)
        if on_progress:
            on_progress(0.5)
        if self.error:
            raise self.error
        return list(self.segments)


@pytest.fixture
def catalog(tmp_path):
    return VideoCatalog(tmp_path / "library")


@pytest.fixture
def make_asset(catalog):
    def _make(title="Sample", **fields):
        path = catalog.video_path(f"{title}.mp4")
        path.write_bytes(b"video")
        asset = Asset(
            original_url=f"https://example.com/{title}.mp4",
            local_path=str(path),
            title=title,
            file_size=5,
            **fields,
        )
        asyncio.run(catalog.add_downloaded_video(asset))
        return asset

    return _make
