"""
Defines custom exceptions for the application to allow for more specific error handling.

Every message is written to be shown to the user as-is.
"""


class VidsubError(Exception):
    """Base exception for all application-specific errors."""


class InvalidSourceError(VidsubError):
    """Raised when a video URL is malformed or uses an unsupported scheme."""

    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"Invalid video URL: {url}" if url else "Invalid video URL")


class DownloadFailedError(VidsubError):
    """
    Raised for transport or HTTP status errors, or when too many segments of a
    stream could not be retrieved.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Download failed: {reason}")


class ManifestParsingError(VidsubError):
    """Raised when a playlist has neither segments nor a variant stream."""

    def __init__(self, message: str = "Failed to parse HLS playlist"):
        super().__init__(message)


class SegmentDownloadError(VidsubError):
    """Raised when not a single segment of a stream could be downloaded."""

    def __init__(self, message: str = "Failed to download video segments"):
        super().__init__(message)


class ExportError(VidsubError):
    """Raised when segment assembly or the final encode does not complete."""

    def __init__(self, message: str = "Failed to export video"):
        super().__init__(message)


class ModelNotLoadedError(VidsubError):
    """Raised when the speech recognition model is unavailable."""

    def __init__(self, message: str = "Whisper model not loaded"):
        super().__init__(message)


class AudioExtractionError(VidsubError):
    """Raised when the audio track cannot be extracted from a video."""

    def __init__(self, message: str = "Failed to extract audio from video"):
        super().__init__(message)


class TranscriptionError(VidsubError):
    """Raised when the transcriber fails on an otherwise valid input."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Transcription failed: {reason}")


class TranslationError(VidsubError):
    """Raised when the translator fails or returns malformed cues."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Translation failed: {reason}")


class AssetNotFoundError(VidsubError):
    """Raised when an asset ID is not present in the catalog."""

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"No downloaded video with ID '{asset_id}'")


class PipelineBusyError(VidsubError):
    """Raised when processing is requested for an asset that is already running."""

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"Video '{asset_id}' is already being processed")


class ConfigurationError(VidsubError):
    """Raised for issues related to configuration loading or validation."""


class DownloadCancelledError(VidsubError):
    """Raised to the caller of a download that was cancelled while in flight."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Download '{operation_id}' was cancelled")
