"""
Joins downloaded stream segments into a single MP4.

Assembly happens in two steps. A `Composition` lays every segment's video and
audio on a shared timeline, each segment starting where the previous one
ended. A backend then renders that timeline; `FFmpegBackend` does it with
the ffmpeg concat demuxer and stream copy.
"""

import asyncio
import json
import logging
import os
import shutil
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from vidsub_cli.exceptions import ExportError
from vidsub_cli.utils.process import run_command

log = logging.getLogger(__name__)

VIDEO = "video"
AUDIO = "audio"


@dataclass(frozen=True)
class SegmentInfo:
    duration: float
    has_video: bool
    has_audio: bool
    audio_codec: str | None = None


@dataclass(frozen=True)
class Clip:
    source: Path
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass
class Composition:
    """A two-track timeline built by appending segments back to back."""

    tracks: dict[str, list[Clip]] = field(
        default_factory=lambda: {VIDEO: [], AUDIO: []}
    )
    audio_codecs: set[str] = field(default_factory=set)
    _cursor: float = 0.0
    _offsets: list[float] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self._cursor

    @property
    def is_empty(self) -> bool:
        return not any(self.tracks.values())

    def offsets(self) -> list[float]:
        """Start time of every appended segment, in append order."""
        return list(self._offsets)

    def append_segment(self, source: Path, info: SegmentInfo) -> None:
        """
        Inserts the segment's tracks at the current end of the timeline.

        A track the segment does not have is left with a gap; the timeline
        still advances by the segment's full duration.
        """
        start = self._cursor
        self._offsets.append(start)
        if info.has_video:
            self.tracks[VIDEO].append(Clip(source, start, info.duration))
        if info.has_audio:
            self.tracks[AUDIO].append(Clip(source, start, info.duration))
            if info.audio_codec:
                self.audio_codecs.add(info.audio_codec)
        self._cursor = start + info.duration


class MediaProbe(Protocol):
    async def probe(self, path: Path) -> SegmentInfo: ...


class ExportBackend(Protocol):
    async def export(self, composition: Composition, output: Path) -> None: ...


class FFprobeProbe:
    """Reads duration and stream types of a media file with ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 30):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    async def probe(self, path: Path) -> SegmentInfo:
        """
        Raises:
            ExportError: If ffprobe fails or reports no usable duration.
        """
        args = [
            self.ffprobe_path,
            "-v",
            "error",
            "-show_entries",
            "format=duration:stream=codec_type,codec_name",
            "-of",
            "json",
            str(path),
        ]
        try:
            result = await run_command(args, timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise ExportError(f"ffprobe failed for {path.name}: {e!r}") from e
        if not result.ok:
            raise ExportError(
                f"ffprobe failed for {path.name} (rc={result.returncode}): "
                f"{result.stderr[:300]}"
            )

        try:
            data = json.loads(result.stdout or "{}")
            duration = float(data.get("format", {}).get("duration", 0))
        except (ValueError, TypeError) as e:
            raise ExportError(f"Unreadable ffprobe output for {path.name}") from e

        streams = data.get("streams", [])
        audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
        return SegmentInfo(
            duration=duration,
            has_video=any(s.get("codec_type") == "video" for s in streams),
            has_audio=audio is not None,
            audio_codec=audio.get("codec_name") if audio else None,
        )


def _quote(path: Path) -> str:
    return "'" + str(path.resolve()).replace("'", "'\\''") + "'"


def build_concat_list(clips: Sequence[Clip]) -> tuple[str, float]:
    """
    Renders a track as an ffconcat script.

    Gaps between clips are folded into the declared duration of the clip
    before them so later clips keep their timeline position. A gap before the
    first clip cannot be expressed in the script and is returned as the
    leading offset to apply to the input instead.
    """
    lines = ["ffconcat version 1.0"]
    leading_offset = clips[0].start if clips else 0.0
    for index, clip in enumerate(clips):
        next_start = clips[index + 1].start if index + 1 < len(clips) else clip.end
        declared = max(next_start - clip.start, clip.duration)
        lines.append(f"file {_quote(clip.source)}")
        lines.append(f"duration {declared:.6f}")
    return "\n".join(lines) + "\n", leading_offset


class FFmpegBackend:
    """Renders a composition to MP4 using stream copy."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float | None = 3600):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def build_command(
        self, composition: Composition, output: Path, work_dir: Path
    ) -> list[str]:
        args = [self.ffmpeg_path, "-y", "-v", "error"]
        maps: list[str] = []
        input_index = 0
        for track in (VIDEO, AUDIO):
            clips = composition.tracks[track]
            if not clips:
                continue
            script, leading_offset = build_concat_list(clips)
            list_path = work_dir / f"{track}.ffconcat"
            list_path.write_text(script, encoding="utf-8")
            if leading_offset > 0:
                args += ["-itsoffset", f"{leading_offset:.6f}"]
            args += ["-f", "concat", "-safe", "0", "-i", str(list_path)]
            stream = "v" if track == VIDEO else "a"
            maps += ["-map", f"{input_index}:{stream}:0"]
            input_index += 1

        args += maps + ["-c", "copy"]
        if composition.audio_codecs == {"aac"}:
            args += ["-bsf:a", "aac_adtstoasc"]
        args += ["-movflags", "+faststart", "-f", "mp4", str(output)]
        return args

    async def export(self, composition: Composition, output: Path) -> None:
        """
        Raises:
            ExportError: If ffmpeg is missing, fails, or writes no output.
        """
        try:
            args = self.build_command(composition, output, output.parent)
        except OSError as e:
            raise ExportError(f"Failed to write concat list: {e}") from e
        try:
            result = await run_command(args, timeout=self.timeout)
        except FileNotFoundError as e:
            raise ExportError(f"Failed to export video: {self.ffmpeg_path} not found") from e
        except asyncio.TimeoutError as e:
            raise ExportError("Failed to export video: ffmpeg timed out") from e
        except OSError as e:
            raise ExportError(f"Failed to export video: {e}") from e
        if not result.ok:
            raise ExportError(
                f"Failed to export video (ffmpeg rc={result.returncode}): "
                f"{result.stderr[:300]}"
            )
        if not output.is_file() or output.stat().st_size == 0:
            raise ExportError("Failed to export video: ffmpeg produced no output")


class AssetAssembler:
    """Builds one playable file from ordered segment files."""

    def __init__(self, probe: MediaProbe, backend: ExportBackend):
        self.probe = probe
        self.backend = backend

    async def compose(self, segment_files: Sequence[Path]) -> Composition:
        """
        Lays the segments on a timeline in the given order.

        A segment that cannot be read is logged and left out; the remaining
        segments are still assembled.
        """
        composition = Composition()
        for path in segment_files:
            try:
                info = await self.probe.probe(path)
            except ExportError as e:
                log.warning(f"[yellow]Skipping unreadable segment {path.name}: {e}[/yellow]")
                continue
            if info.duration <= 0:
                log.warning(
                    f"[yellow]Skipping segment {path.name} with no duration.[/yellow]"
                )
                continue
            composition.append_segment(path, info)
        return composition

    async def assemble(self, segment_files: Sequence[Path], destination: Path) -> Path:
        """
        Assembles `segment_files` into `destination`, replacing any existing
        file there only once the export has succeeded.

        Raises:
            ExportError: If nothing could be composed or the export fails.
        """
        destination = Path(destination)
        work_dir = destination.parent / f".assemble-{uuid.uuid4().hex[:12]}"
        work_dir.mkdir(parents=True, exist_ok=True)
        try:
            composition = await self.compose(segment_files)
            if composition.is_empty:
                raise ExportError("Failed to export video: no readable segments")
            log.debug(
                f"Exporting {len(composition.offsets())} segments "
                f"({composition.duration:.2f}s) to {destination.name}"
            )
            temp_output = work_dir / f"output{destination.suffix or '.mp4'}"
            await self.backend.export(composition, temp_output)
            await asyncio.to_thread(os.replace, temp_output, destination)
            return destination
        finally:
            await asyncio.to_thread(shutil.rmtree, work_dir, True)
