"""
Subtitle rendering (SRT, WebVTT), cue lookup and export to disk.
"""

import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

import aiofiles

from vidsub_cli.exceptions import VidsubError
from vidsub_cli.models.media import Asset, SubtitleCue
from vidsub_cli.utils.path import create_dir, subtitle_filename

log = logging.getLogger(__name__)


class SubtitleFormat(str, Enum):
    SRT = "srt"
    VTT = "vtt"


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Formats seconds as `HH:MM:SS<sep>mmm`, truncating to whole milliseconds."""
    # Round at microsecond precision first so 4.35 is not truncated to 4.349.
    total_millis = int(round(seconds * 1000, 3))
    whole, millis = divmod(total_millis, 1000)
    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def to_srt(cues: Sequence[SubtitleCue]) -> str:
    blocks = []
    for index, cue in enumerate(cues, 1):
        start = format_timestamp(cue.start, ",")
        end = format_timestamp(cue.end, ",")
        blocks.append(f"{index}\n{start} --> {end}\n{cue.translated_text}\n\n")
    return "".join(blocks)


def to_vtt(cues: Sequence[SubtitleCue]) -> str:
    blocks = ["WEBVTT\n\n"]
    for cue in cues:
        start = format_timestamp(cue.start, ".")
        end = format_timestamp(cue.end, ".")
        blocks.append(f"{start} --> {end}\n{cue.translated_text}\n\n")
    return "".join(blocks)


def render(cues: Sequence[SubtitleCue], fmt: SubtitleFormat) -> str:
    return to_vtt(cues) if fmt == SubtitleFormat.VTT else to_srt(cues)


def cue_at(cues: Sequence[SubtitleCue], timestamp: float) -> SubtitleCue | None:
    """Returns the first cue whose interval, closed on both ends, holds `timestamp`."""
    return next((cue for cue in cues if cue.contains(timestamp)), None)


async def export_subtitles(
    asset: Asset, fmt: SubtitleFormat, directory: Path
) -> Path:
    """
    Writes the asset's subtitles to `<directory>/<title>.<ext>`.

    Raises:
        VidsubError: If the asset has no subtitles yet.
    """
    if not asset.subtitles:
        raise VidsubError(
            f"'{asset.title}' has no subtitles yet. Run 'vidsub process {asset.id[:8]}'."
        )

    create_dir(directory)
    output_path = directory / subtitle_filename(asset.title, fmt.value)
    async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
        await f.write(render(asset.subtitles, fmt))
    log.debug(f"Wrote {len(asset.subtitles)} cues to {output_path}")
    return output_path
