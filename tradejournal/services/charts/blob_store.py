"""
chart_image_blobs table operations (the shared "cloud" copy).

Listings never load image bytes; `data` is fetched separately and only
for a single blob.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.models.chart_image import ChartImageBlob
from tradejournal.schemas.chart_image import ChartImageBlobData
from tradejournal.services.ids import is_uuid

logger = logging.getLogger(__name__)


def _blob_key(blob_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(blob_id))
    except ValueError:
        return None


def _to_data(row: ChartImageBlob, data: Optional[bytes] = None) -> ChartImageBlobData:
    return ChartImageBlobData(
        id=str(row.id),
        trade_id=row.trade_id,
        image_type=row.image_type,
        filename=row.filename,
        mime_type=row.mime_type,
        size_bytes=row.size_bytes,
        uploaded_at=row.uploaded_at,
        compressed=bool(row.compressed),
        original_size=row.original_size,
        data=data,
    )


async def save_chart_image_blob(db: AsyncSession, user_id: uuid.UUID, blob: ChartImageBlobData) -> bool:
    key = _blob_key(blob.id)
    if key is None:
        logger.error("Refusing to store chart image blob with non-UUID id %s", blob.id)
        return False

    row = ChartImageBlob(
        id=key,
        user_id=user_id,
        trade_id=blob.trade_id,
        image_type=blob.image_type.value,
        filename=blob.filename,
        mime_type=blob.mime_type,
        size_bytes=blob.size_bytes,
        data=blob.data or b"",
        uploaded_at=blob.uploaded_at,
        compressed=blob.compressed,
        original_size=blob.original_size,
    )
    try:
        await db.merge(row)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save chart image blob %s", blob.id)
        return False
    return True


async def get_chart_image_blob(
    db: AsyncSession, user_id: uuid.UUID, blob_id: str
) -> Optional[ChartImageBlobData]:
    key = _blob_key(blob_id)
    if key is None:
        return None

    try:
        # Metadata first, then the binary payload
        meta = (
            await db.execute(
                select(ChartImageBlob).where(ChartImageBlob.user_id == user_id, ChartImageBlob.id == key)
            )
        ).scalar_one_or_none()
        if meta is None:
            return None

        data = (
            await db.execute(
                select(ChartImageBlob.data).where(ChartImageBlob.user_id == user_id, ChartImageBlob.id == key)
            )
        ).scalar_one()
    except SQLAlchemyError:
        logger.exception("Failed to get chart image blob %s", blob_id)
        return None

    return _to_data(meta, data)


async def get_all_chart_image_blobs(db: AsyncSession, user_id: uuid.UUID) -> List[ChartImageBlobData]:
    """Metadata only, newest first."""
    try:
        result = await db.execute(
            select(ChartImageBlob)
            .where(ChartImageBlob.user_id == user_id)
            .order_by(ChartImageBlob.uploaded_at.desc())
        )
        return [_to_data(row) for row in result.scalars().all()]
    except SQLAlchemyError:
        logger.exception("Failed to list chart image blobs")
        return []


async def delete_chart_image_blob(db: AsyncSession, user_id: uuid.UUID, blob_id: str) -> bool:
    key = _blob_key(blob_id)
    if key is None:
        return False
    try:
        await db.execute(
            delete(ChartImageBlob).where(ChartImageBlob.user_id == user_id, ChartImageBlob.id == key)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete chart image blob %s", blob_id)
        return False
    return True


async def get_trade_chart_image_blobs(
    db: AsyncSession, user_id: uuid.UUID, trade_id: str
) -> List[ChartImageBlobData]:
    if not is_uuid(trade_id, strict=False):
        logger.debug("Trade id %s is not a UUID, skipping chart blob query", trade_id)
        return []
    try:
        result = await db.execute(
            select(ChartImageBlob).where(
                ChartImageBlob.trade_id == trade_id,
                ChartImageBlob.user_id == user_id,
            )
        )
        return [_to_data(row) for row in result.scalars().all()]
    except SQLAlchemyError:
        logger.exception("Failed to get chart image blobs for trade %s", trade_id)
        return []


async def delete_trade_chart_image_blobs(db: AsyncSession, user_id: uuid.UUID, trade_id: str) -> bool:
    # Nothing can be stored under a non-UUID trade id
    if not is_uuid(trade_id, strict=False):
        logger.debug("Trade id %s is not a UUID, skipping chart blob deletion", trade_id)
        return True
    try:
        await db.execute(
            delete(ChartImageBlob).where(
                ChartImageBlob.trade_id == trade_id,
                ChartImageBlob.user_id == user_id,
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete chart image blobs for trade %s", trade_id)
        return False
    return True


async def update_chart_image_blob_trade_id(
    db: AsyncSession, user_id: uuid.UUID, blob_id: str, new_trade_id: str
) -> bool:
    key = _blob_key(blob_id)
    if key is None:
        return False
    try:
        await db.execute(
            update(ChartImageBlob)
            .where(ChartImageBlob.id == key, ChartImageBlob.user_id == user_id)
            .values(trade_id=new_trade_id)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to update trade id of chart image blob %s", blob_id)
        return False
    return True
