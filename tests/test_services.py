import asyncio
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from vidsub_cli.exceptions import (
    AudioExtractionError,
    ModelNotLoadedError,
    TranscriptionError,
    TranslationError,
)
from vidsub_cli.media.audio import AudioExtractor
from vidsub_cli.models.media import TranscriptSegment
from vidsub_cli.services import PhraseTableTranslator, WhisperTranscriber
from vidsub_cli.services.translator import cjk_ratio
from vidsub_cli.utils.process import CommandResult


@pytest.fixture
def translator():
    return PhraseTableTranslator()


def test_known_phrases_are_translated(translator):
    assert translator.translate_text("你好") == "Hello"
    assert translator.translate_text("谢谢 再见") == "Thank you Goodbye"


def test_longest_phrase_wins(translator):
    assert translator.translate_text("不是") == "No"


def test_mostly_untranslated_text_is_marked(translator):
    assert translator.translate_text("天气很好") == "[Translation pending: 天气很好]"


def test_cjk_ratio():
    assert cjk_ratio("") == 0.0
    assert cjk_ratio("ab你好") == 0.5


def test_translate_keeps_segment_timing(translator):
    segments = [
        TranscriptSegment(start=0.5, end=2.25, text="欢迎"),
        TranscriptSegment(start=2.25, end=4.0, text="继续观看"),
    ]
    reports = []

    cues = asyncio.run(translator.translate(segments, reports.append))

    assert [(c.start, c.end) for c in cues] == [(0.5, 2.25), (2.25, 4.0)]
    assert [c.original_text for c in cues] == ["欢迎", "继续观看"]
    assert [c.translated_text for c in cues] == ["Welcome", "Continue Watch"]
    assert reports == [0.5, 1.0]


def test_unsupported_language_pair():
    translator = PhraseTableTranslator(source_language="ja", target_language="en")

    with pytest.raises(TranslationError, match="ja -> en"):
        asyncio.run(translator.translate([TranscriptSegment(start=0, end=1, text="こんにちは")]))


def test_custom_phrase_table():
    translator = PhraseTableTranslator({"bonjour": "hello"}, "fr", "en")

    assert translator.translate_text("bonjour") == "hello"


def test_whisper_segments_are_converted(tmp_path):
    model = MagicMock()
    model.transcribe.return_value = {
        "segments": [
            {"start": 0.0, "end": 2.5, "text": " 你好 "},
            {"start": 2.5, "end": 2.5, "text": "嗯"},
            {"start": 2.5, "end": 4.0, "text": "再见"},
        ]
    }
    whisper = MagicMock()
    whisper.load_model.return_value = model
    reports = []

    with patch.dict("sys.modules", {"whisper": whisper}):
        transcriber = WhisperTranscriber("small", "zh")
        segments = asyncio.run(transcriber.transcribe(tmp_path / "a.wav", reports.append))

    whisper.load_model.assert_called_once_with("small")
    assert [(s.start, s.end, s.text) for s in segments] == [(0.0, 2.5, "你好"), (2.5, 4.0, "再见")]
    assert model.transcribe.call_args.kwargs["language"] == "zh"
    assert reports == [0.0, 1.0]


def test_whisper_not_installed(tmp_path):
    with patch.dict("sys.modules", {"whisper": None}):
        with pytest.raises(ModelNotLoadedError, match="whisper"):
            asyncio.run(WhisperTranscriber().transcribe(tmp_path / "a.wav"))


def test_whisper_inference_failure(tmp_path):
    model = MagicMock()
    model.transcribe.side_effect = RuntimeError("CUDA out of memory")
    whisper = MagicMock()
    whisper.load_model.return_value = model

    with patch.dict("sys.modules", {"whisper": whisper}):
        with pytest.raises(TranscriptionError, match="CUDA out of memory"):
            asyncio.run(WhisperTranscriber().transcribe(tmp_path / "a.wav"))


def test_audio_extraction_without_ffmpeg(tmp_path):
    extractor = AudioExtractor(ffmpeg_path=str(tmp_path / "no-ffmpeg"))

    with pytest.raises(AudioExtractionError):
        asyncio.run(extractor.extract(tmp_path / "video.mp4"))


def test_audio_extraction_failure_cleans_up(tmp_path):
    created = []

    async def failing_run(args, timeout=None):
        created.append(Path(args[-1]).parent)
        return CommandResult(returncode=1, stdout="", stderr="no audio stream")

    with patch("vidsub_cli.media.audio.run_command", failing_run):
        with pytest.raises(AudioExtractionError, match="no audio stream"):
            asyncio.run(AudioExtractor().extract(tmp_path / "video.mp4"))

    assert created and not created[0].exists()
