"""
The per-video state machine that turns a downloaded file into translated
subtitles: audio extraction, transcription, then translation.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from vidsub_cli.exceptions import (
    AssetNotFoundError,
    AudioExtractionError,
    PipelineBusyError,
    TranscriptionError,
    TranslationError,
    VidsubError,
)
from vidsub_cli.media.audio import AudioExtractor
from vidsub_cli.models.media import (
    Asset,
    ProcessingStatus,
    SubtitleCue,
    TranscriptSegment,
)
from vidsub_cli.services import Transcriber, Translator
from vidsub_cli.storage.catalog import VideoCatalog

log = logging.getLogger(__name__)

StageProgressCallback = Callable[[float, str], None]

# Share of overall progress at which each stage begins.
_TRANSCRIBE_START = 0.1
_TRANSLATE_START = 0.6

_STAGE_ERRORS = {
    ProcessingStatus.EXTRACTING_AUDIO: AudioExtractionError,
    ProcessingStatus.TRANSCRIBING: TranscriptionError,
    ProcessingStatus.TRANSLATING: TranslationError,
}


def check_translation(
    segments: Sequence[TranscriptSegment], cues: Sequence[SubtitleCue]
) -> None:
    """Ensures one cue per segment, in order, with the segment's timing."""
    if len(cues) != len(segments):
        raise TranslationError(
            f"expected {len(segments)} cues but the translator returned {len(cues)}"
        )
    for index, (segment, cue) in enumerate(zip(segments, cues)):
        if cue.start != segment.start or cue.end != segment.end:
            raise TranslationError(
                f"cue {index + 1} timing ({cue.start}-{cue.end}) does not match "
                f"its segment ({segment.start}-{segment.end})"
            )


def _untranslated_cues(segments: Sequence[TranscriptSegment]) -> list[SubtitleCue]:
    try:
        return [
            SubtitleCue(
                start=s.start, end=s.end, original_text=s.text, translated_text=""
            )
            for s in segments
        ]
    except ValidationError as e:
        raise TranscriptionError(f"invalid segment timing: {e}") from e


class ProcessingPipeline:
    """
    Sequences the enrichment stages for one asset at a time per asset ID,
    persisting every status change through the catalog.

    A run always starts from the beginning; a failed run is never retried
    automatically.
    """

    def __init__(
        self,
        catalog: VideoCatalog,
        transcriber: Transcriber,
        translator: Translator,
        audio_extractor: AudioExtractor | None = None,
    ):
        self.catalog = catalog
        self.transcriber = transcriber
        self.translator = translator
        self.audio_extractor = audio_extractor
        self._running: set[str] = set()

    def is_running(self, asset_id: str) -> bool:
        return asset_id in self._running

    async def _transition(self, asset: Asset, status: ProcessingStatus) -> Asset:
        asset.status = status
        if not await self.catalog.update_video(asset):
            raise AssetNotFoundError(asset.id)
        log.debug(f"Video {asset.id}: {status.value}")
        return asset

    async def _fail(self, asset: Asset, message: str) -> None:
        asset.status = ProcessingStatus.FAILED
        asset.subtitles = None
        asset.error = message
        await self.catalog.update_video(asset)
        log.error(f"[red]✗ Processing failed for '{asset.title}': {message}[/red]")

    async def process(
        self, asset_id: str, on_progress: StageProgressCallback | None = None
    ) -> Asset:
        """
        Runs every stage for the asset and returns the completed record.

        Raises:
            AssetNotFoundError: If the asset is not in the catalog.
            PipelineBusyError: If the asset is already being processed.
            VidsubError: The typed failure of the stage that failed; the asset
            is left with status `failed` and the error message.
        """
        asset = self.catalog.require(asset_id)
        if asset.id in self._running:
            raise PipelineBusyError(asset.id)

        def report(fraction: float, message: str) -> None:
            if on_progress:
                on_progress(fraction, message)

        self._running.add(asset.id)
        stage = ProcessingStatus.EXTRACTING_AUDIO
        try:
            asset.subtitles = None
            asset.error = None
            asset = await self._transition(asset, stage)
            report(0.0, stage.description)

            segments = await self._transcribe(asset, report)

            stage = ProcessingStatus.TRANSLATING
            asset.subtitles = _untranslated_cues(segments)
            asset = await self._transition(asset, stage)
            report(_TRANSLATE_START, stage.description)

            cues = await self.translator.translate(
                segments,
                lambda f: report(
                    _TRANSLATE_START + (1 - _TRANSLATE_START) * f, stage.description
                ),
            )
            check_translation(segments, cues)

            asset.subtitles = list(cues)
            asset = await self._transition(asset, ProcessingStatus.COMPLETED)
            report(1.0, ProcessingStatus.COMPLETED.description)
            log.info(
                f"[green]✓ Generated {len(cues)} subtitles for '{asset.title}'[/green]"
            )
            return asset
        except VidsubError as e:
            await self._fail(asset, str(e))
            raise
        except asyncio.CancelledError:
            await self._fail(asset, "Processing was cancelled")
            raise
        except Exception as e:
            error = _STAGE_ERRORS.get(asset.status, TranscriptionError)(str(e))
            await self._fail(asset, str(error))
            raise error from e
        finally:
            self._running.discard(asset.id)

    async def _transcribe(
        self, asset: Asset, report: StageProgressCallback
    ) -> list[TranscriptSegment]:
        """Extracts audio when an extractor is configured, then transcribes."""
        media_path = Path(asset.local_path)
        audio_path: Path | None = None
        try:
            if self.audio_extractor:
                audio_path = await self.audio_extractor.extract(media_path)
                media_path = audio_path

            stage = ProcessingStatus.TRANSCRIBING
            await self._transition(asset, stage)
            report(_TRANSCRIBE_START, stage.description)
            segments = await self.transcriber.transcribe(
                media_path,
                lambda f: report(
                    _TRANSCRIBE_START + (_TRANSLATE_START - _TRANSCRIBE_START) * f,
                    stage.description,
                ),
            )
        finally:
            if audio_path and self.audio_extractor:
                await self.audio_extractor.cleanup(audio_path)
        return list(segments)
