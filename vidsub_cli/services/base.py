"""
Protocols for the transcription and translation collaborators.
"""

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

from vidsub_cli.models.media import SubtitleCue, TranscriptSegment

FractionCallback = Callable[[float], None]


class Transcriber(Protocol):
    async def transcribe(
        self, media_path: Path, on_progress: FractionCallback | None = None
    ) -> list[TranscriptSegment]:
        """
        Recognizes speech in an audio or video file.

        Raises:
            ModelNotLoadedError: If the speech model is unavailable.
            AudioExtractionError: If the audio cannot be read.
            TranscriptionError: For any other recognition failure.
        """
        ...


class Translator(Protocol):
    async def translate(
        self,
        segments: Sequence[TranscriptSegment],
        on_progress: FractionCallback | None = None,
    ) -> list[SubtitleCue]:
        """
        Returns one cue per segment, in order, with the segment's timing.

        Raises:
            TranslationError: If translation fails.
        """
        ...
