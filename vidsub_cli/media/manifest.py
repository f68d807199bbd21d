"""
Parsing and resolution of HLS (m3u8) playlists.

Only the subset needed to reassemble a stream is understood: directive lines
start with `#`, `#EXT-X-STREAM-INF` announces a variant playlist on the next
URI line, and every other non-blank line is a media segment.
"""

import logging
from urllib.parse import urljoin

from vidsub_cli.exceptions import ManifestParsingError
from vidsub_cli.media.downloader import Downloader

log = logging.getLogger(__name__)

STREAM_INF_TAG = "#EXT-X-STREAM-INF"


def _uri_lines(text: str):
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            yield stripped


def parse_segments(text: str, base_url: str) -> list[str]:
    """
    Returns the absolute segment URLs of a media playlist, in order.

    URI lines announced by `#EXT-X-STREAM-INF` are variant playlists, not
    segments, and are left out.
    """
    segments = []
    after_stream_inf = False
    for line in _uri_lines(text):
        if line.startswith("#"):
            after_stream_inf = after_stream_inf or line.startswith(STREAM_INF_TAG)
            continue
        if after_stream_inf:
            after_stream_inf = False
            continue
        segments.append(urljoin(base_url, line))
    return segments


def find_variant(text: str, base_url: str) -> str | None:
    """Returns the URL that follows the first `#EXT-X-STREAM-INF` directive."""
    next_is_variant = False
    for line in _uri_lines(text):
        if line.startswith(STREAM_INF_TAG):
            next_is_variant = True
            continue
        if next_is_variant and not line.startswith("#"):
            return urljoin(base_url, line)
    return None


class ManifestResolver:
    """Fetches a playlist and follows master -> variant references."""

    def __init__(self, downloader: Downloader, max_depth: int = 5):
        self.downloader = downloader
        self.max_depth = max_depth

    async def resolve(self, url: str) -> list[str]:
        """
        Resolves `url` to the ordered list of media segment URLs.

        Raises:
            ManifestParsingError: If a playlist has neither segments nor a
            variant reference, or variants nest deeper than `max_depth`.
            DownloadFailedError: If a playlist cannot be fetched.
        """
        current = url
        for depth in range(self.max_depth):
            text = await self.downloader.fetch_text(current)
            segments = parse_segments(text, current)
            if segments:
                log.debug(
                    f"Resolved {len(segments)} segments from playlist at depth "
                    f"{depth}: {current}"
                )
                return segments

            variant = find_variant(text, current)
            if variant is None:
                raise ManifestParsingError()
            log.debug(f"Master playlist {current} -> variant {variant}")
            current = variant

        raise ManifestParsingError(
            f"Failed to parse HLS playlist: variant nesting exceeds "
            f"{self.max_depth} levels"
        )
