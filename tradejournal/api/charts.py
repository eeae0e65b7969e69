import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.api.deps import get_chart_service, require_user_id
from tradejournal.db.database import get_db
from tradejournal.models.enums import ChartImageType
from tradejournal.schemas.chart_image import (
    AttachResult,
    FullCleanupResult,
    ReconcileResult,
    StorageStats,
)
from tradejournal.services import trade_store
from tradejournal.services.charts.service import ChartImageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["charts"])


async def _require_trade(db: AsyncSession, user_id: uuid.UUID, trade_id: str) -> None:
    if not await trade_store.get_trade(db, user_id, trade_id):
        raise HTTPException(status_code=404, detail="Trade not found")


# =================================================
# Per-trade images
# =================================================
@router.post("/trades/{trade_id}/charts/{image_type}", response_model=AttachResult)
async def upload_chart_image(
    trade_id: str,
    image_type: ChartImageType,
    file: UploadFile = File(...),
    compress: bool = Form(True),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
    charts: ChartImageService = Depends(get_chart_service),
):
    await _require_trade(db, user_id, trade_id)

    data = await file.read()
    result = await charts.attach_chart_image(
        trade_id,
        image_type,
        file.filename or "chart",
        file.content_type or "",
        data,
        should_compress=compress,
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or "Invalid image")
    return result


@router.get("/trades/{trade_id}/charts/{image_type}")
async def get_chart_image(
    trade_id: str,
    image_type: ChartImageType,
    charts: ChartImageService = Depends(get_chart_service),
):
    found = await charts.get_trade_chart_image(trade_id, image_type)
    if found is None:
        raise HTTPException(status_code=404, detail="Chart image not found")
    data, mime_type = found
    return Response(content=data, media_type=mime_type)


@router.delete("/trades/{trade_id}/charts/{image_type}")
async def delete_chart_image(
    trade_id: str,
    image_type: ChartImageType,
    user_id: uuid.UUID = Depends(require_user_id),
    charts: ChartImageService = Depends(get_chart_service),
):
    if not await charts.delete_chart_image(trade_id, image_type):
        raise HTTPException(status_code=404, detail="Chart image not found")
    return {"success": True}


# =================================================
# Maintenance
# =================================================
@router.get("/charts/stats", response_model=StorageStats)
async def chart_storage_stats(charts: ChartImageService = Depends(get_chart_service)):
    return await charts.get_storage_stats()


@router.post("/charts/cleanup", response_model=FullCleanupResult)
async def cleanup_chart_data(
    user_id: uuid.UUID = Depends(require_user_id),
    charts: ChartImageService = Depends(get_chart_service),
):
    return await charts.cleanup_all_orphaned_data()


@router.post("/charts/reconcile", response_model=ReconcileResult)
async def reconcile_chart_trade_ids(
    user_id: uuid.UUID = Depends(require_user_id),
    charts: ChartImageService = Depends(get_chart_service),
):
    return await charts.reconcile_legacy_trade_ids()
