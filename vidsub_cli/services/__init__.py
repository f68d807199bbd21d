"""
Speech and language services consumed by the processing pipeline.

The pipeline only depends on the `Transcriber` and `Translator` protocols;
the concrete backends here are the ones the CLI wires up by default.
"""

from .base import Transcriber, Translator
from .translator import PhraseTableTranslator
from .whisper import WhisperTranscriber

__all__ = [
    "PhraseTableTranslator",
    "Transcriber",
    "Translator",
    "WhisperTranscriber",
]
