"""
A dictionary-based fallback translator for Chinese to English.

It substitutes known phrases and flags any line it cannot meaningfully
translate, so the subtitle track is always complete even without a
machine translation model.
"""

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence

from vidsub_cli.exceptions import TranslationError
from vidsub_cli.models.media import SubtitleCue, TranscriptSegment

from .base import FractionCallback

log = logging.getLogger(__name__)

COMMON_PHRASES: dict[str, str] = {
    "你好": "Hello",
    "欢迎": "Welcome",
    "谢谢": "Thank you",
    "再见": "Goodbye",
    "是": "Yes",
    "不是": "No",
    "今天": "Today",
    "我们": "We",
    "这个": "This",
    "视频": "Video",
    "观看": "Watch",
    "讨论": "Discuss",
    "重要": "Important",
    "话题": "Topic",
    "继续": "Continue",
    "了解": "Understand",
    "更多": "More",
    "内容": "Content",
    "请": "Please",
    "要": "Want to",
    "一个": "A/An",
}

# CJK Unified Ideographs and Extension A.
_CJK = re.compile("[\u4e00-\u9fff\u3400-\u4dbf]")
CJK_THRESHOLD = 0.3


def cjk_ratio(text: str) -> float:
    if not text:
        return 0.0
    return len(_CJK.findall(text)) / len(text)


class PhraseTableTranslator:
    """
    Translates segment text by substituting phrases, longest first.

    The built-in table covers Chinese to English only; a custom table is
    assumed to match whatever language pair it is given for.
    """

    BUILTIN_PAIR = ("zh", "en")

    def __init__(
        self,
        phrases: Mapping[str, str] | None = None,
        source_language: str = "zh",
        target_language: str = "en",
    ):
        self.source_language = source_language
        self.target_language = target_language
        self._custom = phrases is not None
        table = COMMON_PHRASES if phrases is None else phrases
        self._phrases = sorted(table.items(), key=lambda kv: len(kv[0]), reverse=True)

    def check_language_pair(self) -> None:
        if self._custom:
            return
        pair = (self.source_language.lower(), self.target_language.lower())
        if pair != self.BUILTIN_PAIR:
            raise TranslationError(
                f"language pair {pair[0]} -> {pair[1]} is not supported"
            )

    def translate_text(self, text: str) -> str:
        result = text
        for source, target in self._phrases:
            result = result.replace(source, f" {target} ")
        result = " ".join(result.split())

        if cjk_ratio(result) > CJK_THRESHOLD:
            return f"[Translation pending: {text}]"
        return result

    async def translate(
        self,
        segments: Sequence[TranscriptSegment],
        on_progress: FractionCallback | None = None,
    ) -> list[SubtitleCue]:
        self.check_language_pair()
        cues = []
        total = len(segments)
        for index, segment in enumerate(segments):
            try:
                translated = self.translate_text(segment.text)
                cues.append(
                    SubtitleCue(
                        start=segment.start,
                        end=segment.end,
                        original_text=segment.text,
                        translated_text=translated,
                    )
                )
            except ValueError as e:
                raise TranslationError(f"segment {index + 1}: {e}") from e
            if on_progress:
                on_progress((index + 1) / total)
            await asyncio.sleep(0)
        log.debug(f"Translated {total} segments")
        return cues
