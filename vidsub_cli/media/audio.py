"""
Audio extraction using ffmpeg.
Target: mono, 16 kHz, 16-bit PCM WAV, the input format speech models expect.
"""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from vidsub_cli.exceptions import AudioExtractionError
from vidsub_cli.utils.process import run_command

log = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1


class AudioExtractor:
    """Pulls the audio track out of a video into a temporary WAV file."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float | None = 1800):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    async def extract(self, video_path: Path) -> Path:
        """
        Returns the path of the extracted WAV. The caller owns the file and
        should pass it to `cleanup` when done.

        Raises:
            AudioExtractionError: If ffmpeg is missing, fails, or the video has
            no audio.
        """
        work_dir = Path(tempfile.mkdtemp(prefix="vidsub-audio-"))
        output_path = work_dir / "audio.wav"
        args = [
            self.ffmpeg_path,
            "-y",
            "-v",
            "error",
            "-i",
            str(video_path),
            "-vn",
            "-ac",
            str(CHANNELS),
            "-ar",
            str(SAMPLE_RATE),
            "-c:a",
            "pcm_s16le",
            str(output_path),
        ]

        try:
            result = await run_command(args, timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            await self.cleanup(output_path)
            raise AudioExtractionError(
                f"Failed to extract audio from video: {e!r}"
            ) from e

        if not result.ok or not output_path.is_file():
            await self.cleanup(output_path)
            raise AudioExtractionError(
                f"Failed to extract audio from video (rc={result.returncode}): "
                f"{result.stderr[:300]}"
            )

        log.debug(f"Extracted audio: {output_path}")
        return output_path

    async def cleanup(self, audio_path: Path) -> None:
        """Removes an extracted file together with its temporary directory."""
        if audio_path.parent.name.startswith("vidsub-audio-"):
            await asyncio.to_thread(shutil.rmtree, audio_path.parent, True)
        else:
            audio_path.unlink(missing_ok=True)
