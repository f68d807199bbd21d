"""
Manages the JSON metadata file that records downloaded videos, their
processing status and their subtitles.
"""

import asyncio
import json
import logging
import os
from collections.abc import Callable
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from vidsub_cli.exceptions import AssetNotFoundError
from vidsub_cli.models.media import Asset

log = logging.getLogger(__name__)

_ASSET_LIST = TypeAdapter(list[Asset])

CatalogListener = Callable[[list[Asset]], None]


class VideoCatalog:
    """
    The single owner of persisted video records.

    The metadata file is read once when the catalog is created and rewritten
    in full after every change. Changes are serialized with a lock so
    concurrent writers never lose each other's updates.
    """

    METADATA_FILENAME = "videos_metadata.json"

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.videos_dir = self.data_dir / "videos"
        self.metadata_file = self.data_dir / self.METADATA_FILENAME
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        self._assets: list[Asset] = self._load()
        self._lock = asyncio.Lock()
        self._listeners: list[CatalogListener] = []

    def _load(self) -> list[Asset]:
        """Reads the metadata file, dropping records whose video file is gone."""
        if not self.metadata_file.is_file():
            return []
        try:
            with open(self.metadata_file, encoding="utf-8") as f:
                assets = _ASSET_LIST.validate_python(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            log.warning(
                f"[yellow]Could not read video catalog {self.metadata_file}:[/] {e}"
            )
            return []

        present = [a for a in assets if Path(a.local_path).is_file()]
        if dropped := len(assets) - len(present):
            log.info(f"Dropped {dropped} catalog entries whose files no longer exist.")
        return present

    def _save_sync(self, assets: list[Asset]) -> None:
        payload = json.dumps(
            _ASSET_LIST.dump_python(assets, mode="json"), ensure_ascii=False, indent=2
        )
        temp_path = self.metadata_file.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(temp_path, self.metadata_file)
        finally:
            temp_path.unlink(missing_ok=True)

    async def _commit(self, assets: list[Asset]) -> None:
        """
        Persists `assets`, then makes them the current records and notifies
        listeners. A failed write leaves the records untouched. Lock must be held.
        """
        snapshot = [a.model_copy(deep=True) for a in assets]
        await asyncio.to_thread(self._save_sync, snapshot)
        self._assets = assets
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                log.warning(f"Catalog listener failed: {e}")

    @property
    def videos(self) -> list[Asset]:
        """A snapshot of all records, in insertion order."""
        return [a.model_copy(deep=True) for a in self._assets]

    def get(self, asset_id: str) -> Asset | None:
        for asset in self._assets:
            if asset.id == asset_id:
                return asset.model_copy(deep=True)
        return None

    def require(self, asset_id: str) -> Asset:
        """Like `get`, but also accepts a unique ID prefix and raises if not found."""
        if asset := self.get(asset_id):
            return asset
        matches = [a for a in self._assets if a.id.startswith(asset_id)]
        if asset_id and len(matches) == 1:
            return matches[0].model_copy(deep=True)
        raise AssetNotFoundError(asset_id)

    def video_path(self, filename: str) -> Path:
        return self.videos_dir / filename

    def subscribe(self, listener: CatalogListener) -> Callable[[], None]:
        """Registers a callback run after every change; returns an unsubscriber."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def add_downloaded_video(self, asset: Asset) -> None:
        async with self._lock:
            await self._commit([*self._assets, asset.model_copy(deep=True)])

    async def update_video(self, asset: Asset) -> bool:
        """Replaces the record with the same ID. Returns False if there is none."""
        async with self._lock:
            for index, existing in enumerate(self._assets):
                if existing.id == asset.id:
                    assets = list(self._assets)
                    assets[index] = asset.model_copy(deep=True)
                    await self._commit(assets)
                    return True
            return False

    async def delete_video(self, asset_id: str) -> bool:
        """Removes the video file and its record. Returns False if unknown."""
        async with self._lock:
            asset = next((a for a in self._assets if a.id == asset_id), None)
            if asset is None:
                return False
            await self._commit([a for a in self._assets if a.id != asset_id])
            try:
                await asyncio.to_thread(Path(asset.local_path).unlink, missing_ok=True)
            except OSError as e:
                log.warning(f"Could not remove video file {asset.local_path}: {e}")
            return True
