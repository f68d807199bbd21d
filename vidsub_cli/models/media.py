"""
Pydantic models for detected candidates, downloaded assets and subtitle cues.
"""

import uuid
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator


def _new_id() -> str:
    return uuid.uuid4().hex


class MediaKind(str, Enum):
    """Declared container/protocol of a candidate video."""

    MP4 = "mp4"
    HLS = "hls"
    WEBM = "webm"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return {
            MediaKind.MP4: "MP4",
            MediaKind.HLS: "HLS Stream",
            MediaKind.WEBM: "WebM",
            MediaKind.UNKNOWN: "Unknown",
        }[self]

    @classmethod
    def from_url(cls, url: str) -> "MediaKind":
        """Guesses the kind from the extension of the URL path."""
        suffix = PurePosixPath(urlparse(url).path).suffix.lower()
        if suffix == ".m3u8":
            return cls.HLS
        if suffix in (".mp4", ".m4v"):
            return cls.MP4
        if suffix == ".webm":
            return cls.WEBM
        return cls.UNKNOWN


class ProcessingStatus(str, Enum):
    """Where an asset is in the transcription/translation pipeline."""

    NOT_STARTED = "not_started"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_in_progress(self) -> bool:
        return self in (
            ProcessingStatus.EXTRACTING_AUDIO,
            ProcessingStatus.TRANSCRIBING,
            ProcessingStatus.TRANSLATING,
        )

    @property
    def description(self) -> str:
        return {
            ProcessingStatus.NOT_STARTED: "Not processed",
            ProcessingStatus.EXTRACTING_AUDIO: "Extracting audio...",
            ProcessingStatus.TRANSCRIBING: "Transcribing...",
            ProcessingStatus.TRANSLATING: "Translating...",
            ProcessingStatus.COMPLETED: "Ready",
            ProcessingStatus.FAILED: "Failed",
        }[self]


class Candidate(BaseModel):
    """A detected video that has not been downloaded yet."""

    id: str = Field(default_factory=_new_id)
    url: str
    kind: MediaKind = MediaKind.UNKNOWN
    quality: Optional[str] = None
    size: Optional[int] = None
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    detected_at: datetime = Field(default_factory=datetime.now)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def display_name(self) -> str:
        if self.page_title:
            return self.page_title
        name = PurePosixPath(urlparse(self.url).path).name
        return name or "Unknown Video"


class TranscriptSegment(BaseModel):
    """A timed piece of recognized speech."""

    start: float
    end: float
    text: str


class SubtitleCue(BaseModel):
    """A subtitle entry with source and translated text."""

    start: float
    end: float
    original_text: str
    translated_text: str

    @model_validator(mode="after")
    def validate_interval(self) -> "SubtitleCue":
        if self.end <= self.start:
            raise ValueError(
                f"Cue end ({self.end}) must be after its start ({self.start})."
            )
        return self

    def contains(self, timestamp: float) -> bool:
        return self.start <= timestamp <= self.end


class Asset(BaseModel):
    """A downloaded video tracked by the catalog."""

    id: str = Field(default_factory=_new_id)
    original_url: str
    local_path: str
    title: str
    downloaded_at: datetime = Field(default_factory=datetime.now)
    file_size: int = 0
    status: ProcessingStatus = ProcessingStatus.NOT_STARTED
    subtitles: Optional[list[SubtitleCue]] = None
    error: Optional[str] = None

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True

    def subtitle_at(self, timestamp: float) -> Optional[SubtitleCue]:
        """Returns the first cue whose interval contains the timestamp."""
        for cue in self.subtitles or []:
            if cue.contains(timestamp):
                return cue
        return None
