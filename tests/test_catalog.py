import asyncio
import json

import pytest

from vidsub_cli.exceptions import AssetNotFoundError
from vidsub_cli.models.media import Asset, ProcessingStatus, SubtitleCue
from vidsub_cli.storage.catalog import VideoCatalog


def _write_metadata(data_dir, assets):
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / VideoCatalog.METADATA_FILENAME).write_text(
        json.dumps([a.model_dump(mode="json") for a in assets]), encoding="utf-8"
    )


def test_records_with_missing_files_are_dropped(tmp_path):
    videos = tmp_path / "videos"
    videos.mkdir()
    assets = []
    for name in ("one", "two", "three"):
        path = videos / f"{name}.mp4"
        if name != "two":
            path.write_bytes(b"video")
        assets.append(Asset(original_url=f"https://e.com/{name}", local_path=str(path), title=name))
    _write_metadata(tmp_path, assets)

    catalog = VideoCatalog(tmp_path)

    assert [a.title for a in catalog.videos] == ["one", "three"]


def test_missing_metadata_file_is_empty(tmp_path):
    catalog = VideoCatalog(tmp_path / "new")

    assert catalog.videos == []
    assert catalog.videos_dir.is_dir()


def test_corrupt_metadata_file_is_empty(tmp_path):
    tmp_path.joinpath(VideoCatalog.METADATA_FILENAME).write_text("{not json", encoding="utf-8")

    assert VideoCatalog(tmp_path).videos == []


def test_changes_are_persisted(tmp_path, catalog, make_asset):
    asset = make_asset("Lecture")
    asset.status = ProcessingStatus.COMPLETED
    asset.subtitles = [SubtitleCue(start=0, end=1.5, original_text="你好", translated_text="Hello")]

    assert asyncio.run(catalog.update_video(asset))

    reloaded = VideoCatalog(catalog.data_dir)
    assert reloaded.get(asset.id) == asset
    assert not list(catalog.data_dir.glob("*.tmp"))


def test_update_unknown_asset(catalog):
    asset = Asset(original_url="https://e.com/x", local_path="/nowhere.mp4", title="x")

    assert asyncio.run(catalog.update_video(asset)) is False
    assert catalog.videos == []


def test_snapshots_are_copies(catalog, make_asset):
    asset = make_asset()

    catalog.get(asset.id).title = "changed"

    assert catalog.get(asset.id).title == "Sample"


def test_require_accepts_unique_prefix(catalog, make_asset):
    asset = make_asset()

    assert catalog.require(asset.id[:6]) == asset
    with pytest.raises(AssetNotFoundError):
        catalog.require("does-not-exist")
    with pytest.raises(AssetNotFoundError):
        catalog.require("")


def test_subscribers_are_notified_until_unsubscribed(catalog, make_asset):
    seen = []
    unsubscribe = catalog.subscribe(lambda assets: seen.append([a.title for a in assets]))

    first = make_asset("first")
    unsubscribe()
    make_asset("second")

    assert seen == [["first"]]
    assert [a.title for a in catalog.videos] == ["first", "second"]
    assert first.id in {a.id for a in catalog.videos}


def test_failing_subscriber_does_not_block_changes(catalog, make_asset):
    def broken(assets):
        raise RuntimeError("listener bug")

    catalog.subscribe(broken)
    asset = make_asset()

    assert catalog.get(asset.id) is not None


def test_delete_removes_file_and_record(catalog, make_asset):
    asset = make_asset()

    assert asyncio.run(catalog.delete_video(asset.id))

    assert catalog.get(asset.id) is None
    assert not (catalog.videos_dir / "Sample.mp4").exists()
    assert VideoCatalog(catalog.data_dir).videos == []
    assert asyncio.run(catalog.delete_video(asset.id)) is False


def _block_metadata_file(catalog):
    catalog.metadata_file.unlink()
    catalog.metadata_file.mkdir()


def test_failed_save_leaves_records_unchanged(catalog, make_asset):
    existing = make_asset("First")
    _block_metadata_file(catalog)
    path = catalog.video_path("Second.mp4")
    path.write_bytes(b"video")
    added = Asset(original_url="https://e.com/2", local_path=str(path), title="Second")

    with pytest.raises(OSError):
        asyncio.run(catalog.add_downloaded_video(added))

    assert [a.id for a in catalog.videos] == [existing.id]
    assert not list(catalog.data_dir.glob("*.tmp"))


def test_failed_update_keeps_previous_record(catalog, make_asset):
    asset = make_asset()
    _block_metadata_file(catalog)
    asset.status = ProcessingStatus.FAILED
    asset.error = "boom"

    with pytest.raises(OSError):
        asyncio.run(catalog.update_video(asset))

    assert catalog.get(asset.id).status == ProcessingStatus.NOT_STARTED
    assert catalog.get(asset.id).error is None


def test_failed_delete_keeps_file_and_record(catalog, make_asset):
    asset = make_asset()
    _block_metadata_file(catalog)

    with pytest.raises(OSError):
        asyncio.run(catalog.delete_video(asset.id))

    assert catalog.get(asset.id) is not None
    assert (catalog.videos_dir / "Sample.mp4").exists()
