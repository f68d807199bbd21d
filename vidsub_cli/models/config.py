"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"
)

WHISPER_MODELS = ("tiny", "base", "small", "medium", "large", "turbo")


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage
    videos_dir: str

    # Network
    request_timeout: float = 60.0
    max_attempts: int = 3
    user_agent: str = DEFAULT_USER_AGENT

    # Streaming
    max_failure_rate: float = 0.10
    max_manifest_depth: int = 5
    segment_download_share: float = 0.8

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Subtitles
    whisper_model: str = "small"
    source_language: str = "zh"
    target_language: str = "en"

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @property
    def data_dir(self) -> Path:
        return Path(self.videos_dir).expanduser()

    @field_validator("videos_dir")
    @classmethod
    def validate_videos_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Videos directory cannot be empty.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or v > 3600:
            raise ValueError("Request timeout must be between 0 and 3600 seconds.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("max_failure_rate", "segment_download_share")
    @classmethod
    def validate_fraction(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("Value must be a fraction strictly between 0 and 1.")
        return v

    @field_validator("max_manifest_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max manifest depth must be between 1 and 10.")
        return v

    @field_validator("whisper_model")
    @classmethod
    def validate_whisper_model(cls, v: str) -> str:
        if v.split(".")[0].split("-")[0] not in WHISPER_MODELS:
            raise ValueError(
                f"Whisper model must be one of: {', '.join(WHISPER_MODELS)}."
            )
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
