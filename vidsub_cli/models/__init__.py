"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: configuration, candidates, assets, cues
and session statistics.
"""

from .config import AppConfig
from .media import (
    Asset,
    Candidate,
    MediaKind,
    ProcessingStatus,
    SubtitleCue,
    TranscriptSegment,
)
from .stats import DownloadStats

__all__ = [
    "AppConfig",
    "Asset",
    "Candidate",
    "DownloadStats",
    "MediaKind",
    "ProcessingStatus",
    "SubtitleCue",
    "TranscriptSegment",
]
