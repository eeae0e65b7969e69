import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.api.deps import get_chart_service, get_user_id, require_user_id
from tradejournal.db.database import get_db
from tradejournal.schemas.trade import SaveResult, TradeIn, TradeOut
from tradejournal.services import trade_store
from tradejournal.services.charts.service import ChartImageService
from tradejournal.services.portfolio import load_ledger
from tradejournal.services.trade_calculations import apply_cumulative_pf, recalculate_trade, recalculate_trades

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trades", tags=["trades"])


# =================================================
# Helpers
# =================================================
async def _get_trade_or_404(db: AsyncSession, user_id: Optional[uuid.UUID], trade_id: str) -> TradeOut:
    trade = await trade_store.get_trade(db, user_id, trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


# =================================================
# LIST / SAVE
# =================================================
@router.get("", response_model=List[TradeOut])
async def list_trades(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    return await trade_store.get_all_trades(db, user_id)


@router.post("", response_model=TradeOut)
async def save_trade(
    payload: TradeIn,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    """Insert or update one trade (matched by id, legacy ids included)."""
    if not await trade_store.save_trade(db, user_id, payload):
        raise HTTPException(status_code=500, detail="Failed to save trade")
    return await _get_trade_or_404(db, user_id, payload.id)


@router.put("", response_model=SaveResult)
async def replace_trades(
    payload: List[TradeIn],
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    """Replace the whole trade list."""
    if not await trade_store.save_all_trades(db, user_id, payload):
        raise HTTPException(status_code=500, detail="Failed to save trades")
    return SaveResult(success=True, count=len(payload))


# =================================================
# RECALCULATION
# =================================================
@router.post("/recalculate", response_model=SaveResult)
async def recalculate_all(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    trades = await trade_store.get_all_trades(db, user_id)
    ledger = await load_ledger(db, user_id)

    updated = recalculate_trades(list(trades), ledger.as_size_fn())
    if not await trade_store.save_all_trades(db, user_id, updated):
        raise HTTPException(status_code=500, detail="Failed to save recalculated trades")

    logger.info("Recalculated %d trades for user %s", len(updated), user_id)
    return SaveResult(success=True, count=len(updated))


@router.post("/{trade_id}/recalculate", response_model=TradeOut)
async def recalculate_one(
    trade_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    """Recompute one trade, then the cumulative PF of the whole list."""
    trade = await _get_trade_or_404(db, user_id, trade_id)
    ledger = await load_ledger(db, user_id)

    recalculated = recalculate_trade(trade, ledger.as_size_fn())
    trades = [recalculated if t.id == trade.id else t for t in await trade_store.get_all_trades(db, user_id)]

    if not await trade_store.save_all_trades(db, user_id, apply_cumulative_pf(trades)):
        raise HTTPException(status_code=500, detail="Failed to save recalculated trade")
    return await _get_trade_or_404(db, user_id, trade_id)


# =================================================
# SINGLE TRADE
# =================================================
@router.get("/{trade_id}", response_model=TradeOut)
async def get_trade(
    trade_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    return await _get_trade_or_404(db, user_id, trade_id)


@router.delete("/{trade_id}")
async def delete_trade(
    trade_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
    charts: ChartImageService = Depends(get_chart_service),
):
    await _get_trade_or_404(db, user_id, trade_id)

    await charts.delete_trade_chart_images(trade_id)

    if not await trade_store.delete_trade(db, user_id, trade_id):
        raise HTTPException(status_code=500, detail="Failed to delete trade")
    return {"success": True, "id": trade_id}
