"""
On-disk chart image cache.

Layout: <root>/<user_id>/<blob_id>.bin with a <blob_id>.json metadata
sidecar. This is the local copy; the database table is the shared one.
Every operation reports failure through its return value and logs it.
"""

import asyncio
import json
import logging
import shutil
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from tradejournal.config import get_settings
from tradejournal.schemas.chart_image import ChartImageBlobData

logger = logging.getLogger(__name__)


class LocalBlobCache:
    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else Path(get_settings().chart_cache_dir)

    def _user_dir(self, user_id: uuid.UUID) -> Path:
        return self.root / str(user_id)

    def _paths(self, user_id: uuid.UUID, blob_id: str):
        # blob ids are UUIDs; reject anything that could escape the directory
        safe_id = str(uuid.UUID(blob_id))
        base = self._user_dir(user_id)
        return base / f"{safe_id}.bin", base / f"{safe_id}.json"

    # ---------- sync workers ----------

    def _save(self, user_id: uuid.UUID, blob: ChartImageBlobData) -> None:
        data_path, meta_path = self._paths(user_id, blob.id)
        data_path.parent.mkdir(parents=True, exist_ok=True)
        data_path.write_bytes(blob.data or b"")
        meta_path.write_text(blob.model_dump_json(), encoding="utf-8")

    def _read_meta(self, meta_path: Path) -> ChartImageBlobData:
        return ChartImageBlobData.model_validate_json(meta_path.read_text(encoding="utf-8"))

    def _get(self, user_id: uuid.UUID, blob_id: str) -> Optional[ChartImageBlobData]:
        data_path, meta_path = self._paths(user_id, blob_id)
        if not meta_path.exists() or not data_path.exists():
            return None
        blob = self._read_meta(meta_path)
        blob.data = data_path.read_bytes()
        return blob

    def _delete(self, user_id: uuid.UUID, blob_id: str) -> None:
        data_path, meta_path = self._paths(user_id, blob_id)
        data_path.unlink(missing_ok=True)
        meta_path.unlink(missing_ok=True)

    def _list(self, user_id: uuid.UUID) -> List[ChartImageBlobData]:
        base = self._user_dir(user_id)
        if not base.is_dir():
            return []
        blobs = []
        for meta_path in sorted(base.glob("*.json")):
            try:
                blobs.append(self._read_meta(meta_path))
            except (ValidationError, json.JSONDecodeError):
                logger.warning("Skipping unreadable blob metadata %s", meta_path)
        return blobs

    # ---------- public API ----------

    async def save(self, user_id: uuid.UUID, blob: ChartImageBlobData) -> bool:
        try:
            await asyncio.to_thread(self._save, user_id, blob)
        except (OSError, ValueError):
            logger.exception("Failed to save chart image blob %s locally", blob.id)
            return False
        return True

    async def get(self, user_id: uuid.UUID, blob_id: str) -> Optional[ChartImageBlobData]:
        try:
            return await asyncio.to_thread(self._get, user_id, blob_id)
        except (OSError, ValueError):
            logger.exception("Failed to read chart image blob %s locally", blob_id)
            return None

    async def delete(self, user_id: uuid.UUID, blob_id: str) -> bool:
        try:
            await asyncio.to_thread(self._delete, user_id, blob_id)
        except (OSError, ValueError):
            logger.exception("Failed to delete chart image blob %s locally", blob_id)
            return False
        return True

    async def list_all(self, user_id: uuid.UUID) -> List[ChartImageBlobData]:
        try:
            return await asyncio.to_thread(self._list, user_id)
        except OSError:
            logger.exception("Failed to list local chart image blobs")
            return []

    async def delete_for_trade(self, user_id: uuid.UUID, trade_id: str) -> bool:
        ok = True
        for blob in await self.list_all(user_id):
            if blob.trade_id == trade_id:
                ok = await self.delete(user_id, blob.id) and ok
        return ok

    async def update_trade_id(self, user_id: uuid.UUID, blob_id: str, new_trade_id: str) -> bool:
        blob = await self.get(user_id, blob_id)
        if blob is None:
            return False
        blob.trade_id = new_trade_id
        return await self.save(user_id, blob)

    async def clear(self, user_id: uuid.UUID) -> bool:
        try:
            await asyncio.to_thread(shutil.rmtree, self._user_dir(user_id), True)
        except OSError:
            logger.exception("Failed to clear local chart cache of user %s", user_id)
            return False
        return True
