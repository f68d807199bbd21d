import pytest
from pydantic import ValidationError

from vidsub_cli.models.media import (
    Asset,
    Candidate,
    MediaKind,
    ProcessingStatus,
    SubtitleCue,
)


@pytest.mark.parametrize(
    "url, kind",
    [
        ("https://e.com/live/master.m3u8?token=1", MediaKind.HLS),
        ("https://e.com/a.MP4", MediaKind.MP4),
        ("https://e.com/a.webm", MediaKind.WEBM),
        ("https://e.com/watch?v=1", MediaKind.UNKNOWN),
    ],
)
def test_media_kind_from_url(url, kind):
    assert MediaKind.from_url(url) == kind


def test_candidate_display_name():
    assert Candidate(url="https://e.com/a.mp4", page_title="Talk").display_name == "Talk"
    assert Candidate(url="https://e.com/v/a.mp4").display_name == "a.mp4"
    assert Candidate(url="https://e.com/").display_name == "Unknown Video"


def test_candidate_is_immutable():
    candidate = Candidate(url="https://e.com/a.mp4")

    with pytest.raises(ValidationError):
        candidate.url = "https://e.com/b.mp4"


@pytest.mark.parametrize("start, end", [(3, 3), (5, 4)])
def test_cue_end_must_follow_start(start, end):
    with pytest.raises(ValidationError):
        SubtitleCue(start=start, end=end, original_text="", translated_text="")


def test_subtitle_at_returns_first_overlapping_cue():
    asset = Asset(
        original_url="https://e.com/a.mp4",
        local_path="/v/a.mp4",
        title="a",
        subtitles=[
            SubtitleCue(start=0, end=4, original_text="一", translated_text="one"),
            SubtitleCue(start=2, end=6, original_text="二", translated_text="two"),
        ],
    )

    assert asset.subtitle_at(3).translated_text == "one"
    assert asset.subtitle_at(5).translated_text == "two"
    assert asset.subtitle_at(7) is None


def test_in_progress_statuses():
    assert ProcessingStatus.TRANSCRIBING.is_in_progress
    assert not ProcessingStatus.FAILED.is_in_progress
    assert not ProcessingStatus.NOT_STARTED.is_in_progress
