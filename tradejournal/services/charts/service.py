"""
Chart image pipeline.

Images live in two places: the local on-disk cache and the database
blob table. Writes go to both (the database copy only for signed-in
users, and its failure is not fatal). Reads prefer the local copy and
backfill it from the database. The trade row only keeps a small
descriptor per image under chart_attachments.
"""

import base64
import binascii
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.models.enums import ChartImageType
from tradejournal.models.trade import Trade
from tradejournal.schemas.chart_image import (
    AttachResult,
    ChartImage,
    ChartImageBlobData,
    CleanupResult,
    FullCleanupResult,
    ReconcileResult,
    StorageStats,
)
from tradejournal.services import trade_store
from tradejournal.services.charts import blob_store
from tradejournal.services.charts.images import (
    CHART_IMAGE_CONFIG,
    ChartImageError,
    calculate_chart_attachments_size,
    create_chart_image,
)
from tradejournal.services.charts.local_cache import LocalBlobCache
from tradejournal.services.ids import convert_to_uuid

logger = logging.getLogger(__name__)

IMAGE_KEYS = tuple(t.value for t in ChartImageType)

GUEST_CACHE_KEY = uuid.UUID(int=0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _canonical_id(value: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)


def _trade_key(trade_id: str) -> str:
    """Lowercase UUID a blob stores for `trade_id`, legacy ids included."""
    return str(uuid.UUID(convert_to_uuid(trade_id)))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_datetime(value: Any) -> bool:
    if isinstance(value, datetime):
        return True
    if not isinstance(value, str):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def validate_chart_image(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("id"), str)
        and isinstance(value.get("filename"), str)
        and isinstance(value.get("mimeType"), str)
        and _is_number(value.get("size"))
        and _is_datetime(value.get("uploadedAt"))
        and value.get("storage") in ("inline", "blob")
        and value.get("mimeType") in CHART_IMAGE_CONFIG.allowed_types
    )


def validate_chart_attachments(value: Any) -> bool:
    if not value or not isinstance(value, dict):
        return False
    for key in IMAGE_KEYS:
        if value.get(key) and not validate_chart_image(value[key]):
            return False
    return True


def _with_metadata(attachments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Recompute metadata; None when no image is left."""
    if not any(attachments.get(k) for k in IMAGE_KEYS):
        return None
    metadata = dict(attachments.get("metadata") or {})
    metadata.setdefault("createdAt", _now().isoformat())
    metadata["updatedAt"] = _now().isoformat()
    metadata["totalSize"] = calculate_chart_attachments_size(attachments)
    return {**attachments, "metadata": metadata}


class ChartImageService:
    def __init__(
        self,
        db: AsyncSession,
        user_id: Optional[uuid.UUID],
        cache: Optional[LocalBlobCache] = None,
    ):
        self.db = db
        self.user_id = user_id
        self.cache = cache or LocalBlobCache()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def _cache_key(self) -> uuid.UUID:
        return self.user_id or GUEST_CACHE_KEY

    # =================================================
    # Trade row helpers
    # =================================================
    async def _trade_row(self, trade_id: str) -> Optional[Trade]:
        if not self.is_authenticated:
            return None
        return await trade_store.get_trade_row(self.db, self.user_id, trade_id)

    async def _all_trade_rows(self) -> List[Trade]:
        if not self.is_authenticated:
            return []
        result = await self.db.execute(select(Trade).where(Trade.user_id == self.user_id))
        return list(result.scalars().all())

    async def _store_attachments(self, row: Trade, attachments: Optional[Dict[str, Any]]) -> None:
        row.chart_attachments = attachments
        await self.db.commit()
        trade_store.clear_trades_cache(self.user_id)

    @staticmethod
    def get_attachment(row: Trade, image_type: ChartImageType) -> Optional[ChartImage]:
        raw = (row.chart_attachments or {}).get(image_type.value)
        if not raw:
            return None
        try:
            return ChartImage.model_validate(raw)
        except ValidationError:
            logger.warning("Malformed %s attachment on trade %s", image_type.value, row.id)
            return None

    # =================================================
    # Blob storage (local + cloud)
    # =================================================
    async def _get_blob(self, blob_id: str) -> Optional[ChartImageBlobData]:
        blob = await self.cache.get(self._cache_key, blob_id)
        if blob is not None:
            return blob

        if not self.is_authenticated:
            return None

        blob = await blob_store.get_chart_image_blob(self.db, self.user_id, blob_id)
        if blob is not None:
            await self.cache.save(self._cache_key, blob)
            logger.info("Retrieved chart image %s from database", blob.filename)
        return blob

    async def _delete_blob(self, blob_id: str) -> bool:
        ok = await self.cache.delete(self._cache_key, blob_id)
        if not ok:
            logger.warning("Failed to delete local chart image blob %s, continuing", blob_id)
        if self.is_authenticated:
            ok = await blob_store.delete_chart_image_blob(self.db, self.user_id, blob_id) and ok
        return ok

    async def _all_blobs(self) -> Dict[str, ChartImageBlobData]:
        blobs: Dict[str, ChartImageBlobData] = {}
        for blob in await self.cache.list_all(self._cache_key):
            blobs[_canonical_id(blob.id)] = blob
        if self.is_authenticated:
            for blob in await blob_store.get_all_chart_image_blobs(self.db, self.user_id):
                blobs.setdefault(_canonical_id(blob.id), blob)
        return blobs

    # =================================================
    # Attach / read / delete
    # =================================================
    async def attach_chart_image(
        self,
        trade_id: str,
        image_type: ChartImageType,
        filename: str,
        mime_type: str,
        data: bytes,
        should_compress: bool = True,
    ) -> AttachResult:
        logger.info(
            "Attaching %s chart image to trade %s: %s (%d bytes)",
            image_type.value,
            trade_id,
            filename,
            len(data),
        )

        try:
            chart_image, processed = create_chart_image(filename, mime_type, data, should_compress)
        except ChartImageError as exc:
            return AttachResult(success=False, error=str(exc))

        blob = ChartImageBlobData(
            id=chart_image.blob_id,
            trade_id=_trade_key(trade_id),
            image_type=image_type,
            filename=chart_image.filename,
            mime_type=chart_image.mime_type,
            size_bytes=chart_image.size,
            uploaded_at=chart_image.uploaded_at,
            compressed=chart_image.compressed,
            original_size=chart_image.original_size,
            data=processed,
        )

        if not await self.cache.save(self._cache_key, blob):
            return AttachResult(success=False, error="Failed to save image blob to local storage")

        if self.is_authenticated:
            if await blob_store.save_chart_image_blob(self.db, self.user_id, blob):
                logger.info("Chart image also saved to database: %s", blob.filename)
            else:
                logger.warning("Failed to save chart image to database: %s", blob.filename)

            try:
                await self._record_attachment(trade_id, image_type, chart_image)
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception("Failed to record chart attachment on trade %s", trade_id)
                await self._delete_blob(blob.id)
                return AttachResult(success=False, error="Failed to update trade attachments")

        logger.info("Chart image attached: %s storage, %d bytes", chart_image.storage, chart_image.size)
        return AttachResult(success=True, chart_image=chart_image)

    async def _record_attachment(
        self, trade_id: str, image_type: ChartImageType, chart_image: ChartImage
    ) -> None:
        row = await self._trade_row(trade_id)
        if row is None:
            return

        previous = self.get_attachment(row, image_type)

        attachments = dict(row.chart_attachments or {})
        attachments[image_type.value] = chart_image.model_dump(by_alias=True, mode="json", exclude_none=True)
        await self._store_attachments(row, _with_metadata(attachments))

        # Only once the trade points at the new blob
        if previous and previous.storage == "blob" and previous.blob_id:
            await self._delete_blob(previous.blob_id)

    async def get_chart_image_data(self, chart_image: ChartImage) -> Optional[Tuple[bytes, str]]:
        if chart_image.storage == "inline":
            if not chart_image.data:
                return None
            try:
                return base64.b64decode(chart_image.data), chart_image.mime_type
            except (binascii.Error, ValueError):
                logger.error("Inline chart image %s has invalid base64 data", chart_image.id)
                return None

        if chart_image.blob_id:
            blob = await self._get_blob(chart_image.blob_id)
            if blob is not None and blob.data is not None:
                return blob.data, blob.mime_type

        return None

    async def get_trade_chart_image(
        self, trade_id: str, image_type: ChartImageType
    ) -> Optional[Tuple[bytes, str]]:
        row = await self._trade_row(trade_id)
        if row is None:
            return None
        chart_image = self.get_attachment(row, image_type)
        if chart_image is None:
            return None
        return await self.get_chart_image_data(chart_image)

    async def delete_chart_image(self, trade_id: str, image_type: ChartImageType) -> bool:
        row = await self._trade_row(trade_id)
        if row is None:
            return False

        chart_image = self.get_attachment(row, image_type)
        if chart_image is None:
            return False

        logger.info(
            "Deleting %s chart image for trade %s: %s",
            image_type.value,
            trade_id,
            chart_image.filename,
        )

        if chart_image.storage == "blob" and chart_image.blob_id:
            await self._delete_blob(chart_image.blob_id)

        attachments = dict(row.chart_attachments or {})
        attachments.pop(image_type.value, None)
        try:
            await self._store_attachments(row, _with_metadata(attachments))
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to update attachments of trade %s", trade_id)
            return False
        return True

    async def delete_trade_chart_images(self, trade_id: str) -> bool:
        logger.info("Deleting all chart images for trade %s", trade_id)
        # Older blobs may hold the id as the client sent it
        keys = {trade_id, convert_to_uuid(trade_id), _trade_key(trade_id)}

        ok = True
        for key in keys:
            if not await self.cache.delete_for_trade(self._cache_key, key):
                ok = False
        if self.is_authenticated:
            for key in keys:
                if not await blob_store.delete_trade_chart_image_blobs(self.db, self.user_id, key):
                    ok = False

        if not ok:
            logger.warning("Failed to delete some chart image blobs of trade %s", trade_id)
        return True

    # =================================================
    # Stats / maintenance
    # =================================================
    async def get_storage_stats(self) -> StorageStats:
        try:
            blobs = await self._all_blobs()
            rows = await self._all_trade_rows()
        except SQLAlchemyError:
            logger.exception("Failed to get chart storage stats")
            return StorageStats()

        blob_size = sum(b.size_bytes for b in blobs.values())

        inline_images = 0
        inline_size = 0
        for row in rows:
            for key in IMAGE_KEYS:
                attachment = (row.chart_attachments or {}).get(key)
                if attachment and attachment.get("storage") == "inline":
                    inline_images += 1
                    inline_size += attachment.get("size") or 0

        return StorageStats(
            total_images=len(blobs) + inline_images,
            total_size=blob_size + inline_size,
            inline_images=inline_images,
            inline_size=inline_size,
            blob_images=len(blobs),
            blob_size=blob_size,
        )

    async def cleanup_orphaned_blobs(self) -> CleanupResult:
        """Delete blobs whose trade no longer exists."""
        try:
            blobs = await self._all_blobs()
            rows = await self._all_trade_rows()
        except SQLAlchemyError:
            logger.exception("Failed to cleanup orphaned blobs")
            return CleanupResult(cleaned=0, errors=1)

        trade_ids = set()
        for row in rows:
            trade_ids.add(str(row.id))
            if row.legacy_id:
                trade_ids.add(row.legacy_id)

        result = CleanupResult()
        for blob in blobs.values():
            if _canonical_id(blob.trade_id) in trade_ids:
                continue
            if await self._delete_blob(blob.id):
                result.cleaned += 1
            else:
                result.errors += 1

        logger.info("Blob cleanup completed: %d cleaned, %d errors", result.cleaned, result.errors)
        return result

    async def cleanup_orphaned_attachments(self) -> CleanupResult:
        """Drop attachment descriptors that point at missing blobs."""
        logger.info("Starting cleanup of orphaned chart attachments")
        try:
            blob_ids = set((await self._all_blobs()).keys())
            rows = await self._all_trade_rows()
        except SQLAlchemyError:
            logger.exception("Failed to cleanup orphaned attachments")
            return CleanupResult(cleaned=0, errors=1)

        # Plain copies: a rollback below expires every row
        snapshot = [(row, row.id, dict(row.chart_attachments)) for row in rows if row.chart_attachments]

        result = CleanupResult()
        for row, row_id, attachments in snapshot:
            changed = False
            for key in IMAGE_KEYS:
                attachment = attachments.get(key)
                if (
                    attachment
                    and attachment.get("storage") == "blob"
                    and attachment.get("blobId")
                    and _canonical_id(attachment["blobId"]) not in blob_ids
                ):
                    logger.info(
                        "Removing orphaned %s attachment from trade %s: %s",
                        key,
                        row_id,
                        attachment.get("filename"),
                    )
                    del attachments[key]
                    changed = True

            if not changed:
                continue

            try:
                await self._store_attachments(row, _with_metadata(attachments))
                result.cleaned += 1
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception("Failed to save cleaned attachments of trade %s", row_id)
                result.errors += 1

        logger.info(
            "Attachment cleanup completed: %d trades cleaned, %d errors",
            result.cleaned,
            result.errors,
        )
        return result

    async def cleanup_all_orphaned_data(self) -> FullCleanupResult:
        logger.info("Starting cleanup of all orphaned chart data")

        blob_cleanup = await self.cleanup_orphaned_blobs()
        attachment_cleanup = await self.cleanup_orphaned_attachments()

        result = FullCleanupResult(
            blobs_cleaned=blob_cleanup.cleaned,
            attachments_cleaned=attachment_cleanup.cleaned,
            errors=blob_cleanup.errors + attachment_cleanup.errors,
        )
        logger.info(
            "Cleanup completed: %d blobs, %d attachments, %d errors",
            result.blobs_cleaned,
            result.attachments_cleaned,
            result.errors,
        )
        return result

    async def reconcile_legacy_trade_ids(self) -> ReconcileResult:
        """Point blobs at the trade's lowercase UUID (legacy ids, uppercase UUIDs)."""
        result = ReconcileResult()

        local = await self.cache.list_all(self._cache_key)
        for blob in local:
            new_trade_id = _trade_key(blob.trade_id)
            if new_trade_id == blob.trade_id:
                continue
            if await self.cache.update_trade_id(self._cache_key, blob.id, new_trade_id):
                result.updated += 1
            else:
                result.errors += 1

        if self.is_authenticated:
            for blob in await blob_store.get_all_chart_image_blobs(self.db, self.user_id):
                new_trade_id = _trade_key(blob.trade_id)
                if new_trade_id == blob.trade_id:
                    continue
                if await blob_store.update_chart_image_blob_trade_id(
                    self.db, self.user_id, blob.id, new_trade_id
                ):
                    result.updated += 1
                else:
                    result.errors += 1

        logger.info("Reconciled %d chart image blobs (%d errors)", result.updated, result.errors)
        return result
