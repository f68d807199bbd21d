"""
Speech recognition backed by the openai-whisper package.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from vidsub_cli.exceptions import ModelNotLoadedError, TranscriptionError
from vidsub_cli.models.media import TranscriptSegment

from .base import FractionCallback

log = logging.getLogger(__name__)


class WhisperTranscriber:
    """
    Transcribes audio with a Whisper model loaded on first use.

    Loading and inference are CPU/GPU bound and run in a worker thread.
    """

    def __init__(self, model_name: str = "small", language: str | None = "zh"):
        self.model_name = model_name
        self.language = language
        self._model: Any = None
        self._load_lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def load_model(self) -> None:
        """
        Raises:
            ModelNotLoadedError: If whisper is not installed or the model
            cannot be loaded.
        """
        async with self._load_lock:
            if self._model is not None:
                return
            try:
                import whisper
            except ImportError as e:
                raise ModelNotLoadedError(
                    "Whisper model not loaded: install the 'whisper' extra "
                    "(pip install 'vidsub-cli[whisper]')"
                ) from e

            log.info(f"Loading Whisper model '[cyan]{self.model_name}[/cyan]'...")
            try:
                self._model = await asyncio.to_thread(
                    whisper.load_model, self.model_name
                )
            except Exception as e:
                raise ModelNotLoadedError(
                    f"Whisper model not loaded: failed to load '{self.model_name}': {e}"
                ) from e

    def _run(self, media_path: Path) -> dict[str, Any]:
        return self._model.transcribe(
            str(media_path), language=self.language, task="transcribe", verbose=None
        )

    async def transcribe(
        self, media_path: Path, on_progress: FractionCallback | None = None
    ) -> list[TranscriptSegment]:
        await self.load_model()
        if on_progress:
            on_progress(0.0)

        try:
            result = await asyncio.to_thread(self._run, media_path)
        except Exception as e:
            raise TranscriptionError(str(e) or type(e).__name__) from e

        segments = [
            TranscriptSegment(
                start=float(seg["start"]),
                end=float(seg["end"]),
                text=str(seg["text"]).strip(),
            )
            for seg in result.get("segments", [])
            if float(seg["end"]) > float(seg["start"])
        ]
        log.debug(f"Whisper produced {len(segments)} segments for {media_path.name}")
        if on_progress:
            on_progress(1.0)
        return segments
