"""
vidsub-cli: download web videos, reassemble streams and generate translated
subtitles.
"""

__version__ = "0.3.0"
