"""
Media Processing Layer.

This package is responsible for all media file operations: HTTP downloads,
HLS playlist resolution, segment fetching, segment assembly and audio
extraction.
"""

from .assembler import AssetAssembler, Composition, FFmpegBackend, FFprobeProbe
from .audio import AudioExtractor
from .downloader import Downloader
from .manifest import ManifestResolver
from .segments import SegmentFetcher

__all__ = [
    "AssetAssembler",
    "AudioExtractor",
    "Composition",
    "Downloader",
    "FFmpegBackend",
    "FFprobeProbe",
    "ManifestResolver",
    "SegmentFetcher",
]
