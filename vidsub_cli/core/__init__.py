"""
Core application engine for downloading and enriching videos.

This package contains the primary logic. The `DownloadCoordinator` picks a
download strategy per candidate and owns the progress registry, while the
`ProcessingPipeline` drives each downloaded video through audio extraction,
transcription and translation.
"""

from .download_coordinator import DownloadCoordinator
from .pipeline import ProcessingPipeline

__all__ = ["DownloadCoordinator", "ProcessingPipeline"]
