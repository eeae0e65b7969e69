"""
Trades table operations.

Every function takes the request's AsyncSession and the caller's user id.
Failures are logged and reported through the return value (empty list,
None, False); callers decide how to surface them.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.config import get_settings
from tradejournal.models.trade import Trade
from tradejournal.schemas.trade import DATE_FIELDS, TradeIn, TradeOut
from tradejournal.services.ids import convert_to_uuid

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100

NUMERIC_FIELDS = (
    "entry",
    "avg_entry",
    "sl",
    "tsl",
    "cmp",
    "initial_qty",
    "pyramid1_price",
    "pyramid1_qty",
    "pyramid2_price",
    "pyramid2_qty",
    "position_size",
    "allocation",
    "sl_percent",
    "exit1_price",
    "exit1_qty",
    "exit2_price",
    "exit2_qty",
    "exit3_price",
    "exit3_qty",
    "open_qty",
    "exited_qty",
    "avg_exit_price",
    "stock_move",
    "reward_risk",
    "holding_days",
    "realised_amount",
    "pl_rs",
    "pf_impact",
    "cumm_pf",
    "open_heat",
)
TEXT_FIELDS = (
    "trade_no",
    "name",
    "setup",
    "base_duration",
    "exit_trigger",
    "proficiency_growth_areas",
    "sector",
    "notes",
)

# user_id -> (trades, stored_at)
_trades_cache: Dict[uuid.UUID, Tuple[List[TradeOut], float]] = {}


def _uuid(value: str) -> uuid.UUID:
    return uuid.UUID(convert_to_uuid(value))


# =================================================
# Row <-> API conversion
# =================================================
def row_to_trade(row: Trade) -> TradeOut:
    values: Dict[str, Any] = {"id": row.legacy_id or str(row.id)}

    for field in NUMERIC_FIELDS:
        values[field] = getattr(row, field) or 0
    for field in TEXT_FIELDS:
        values[field] = getattr(row, field) or ""
    for field in DATE_FIELDS:
        values[field] = getattr(row, field)

    values["buy_sell"] = row.buy_sell or "Buy"
    values["position_status"] = row.position_status or "Open"
    values["plan_followed"] = bool(row.plan_followed)
    values["chart_attachments"] = row.chart_attachments or {}
    values["user_edited_fields"] = row.user_edited_fields or []
    values["cmp_auto_fetched"] = bool(row.cmp_auto_fetched)
    values["needs_recalculation"] = bool(row.needs_recalculation)

    return TradeOut.model_validate(values)


def trade_to_row(trade: TradeIn, user_id: uuid.UUID) -> Dict[str, Any]:
    trade_uuid = convert_to_uuid(trade.id)

    row = trade.model_dump(
        exclude={"id"},
        mode="python",
    )
    row["buy_sell"] = trade.buy_sell.value
    row["position_status"] = trade.position_status.value
    row["id"] = uuid.UUID(trade_uuid)
    row["legacy_id"] = trade.id if trade.id != trade_uuid else None
    row["user_id"] = user_id
    row["chart_attachments"] = trade.chart_attachments or {}
    row["user_edited_fields"] = trade.user_edited_fields or []
    return row


# =================================================
# Cache
# =================================================
def clear_trades_cache(user_id: Optional[uuid.UUID] = None) -> None:
    if user_id is not None:
        _trades_cache.pop(user_id, None)
    else:
        _trades_cache.clear()


def _cached(user_id: uuid.UUID) -> Optional[List[TradeOut]]:
    entry = _trades_cache.get(user_id)
    if entry is None:
        return None
    trades, stored_at = entry
    if time.monotonic() - stored_at >= get_settings().trades_cache_ttl:
        _trades_cache.pop(user_id, None)
        return None
    return trades


# =================================================
# Reads
# =================================================
async def get_all_trades(db: AsyncSession, user_id: Optional[uuid.UUID]) -> List[TradeOut]:
    # Guest mode: nothing stored server-side
    if user_id is None:
        return []

    started = time.perf_counter()

    cached = _cached(user_id)
    if cached is not None:
        logger.debug("Trades loaded from cache in %.0fms", (time.perf_counter() - started) * 1000)
        return cached

    try:
        result = await db.execute(
            select(Trade).where(Trade.user_id == user_id).order_by(Trade.trade_no.asc())
        )
        trades = [row_to_trade(row) for row in result.scalars().all()]
    except SQLAlchemyError:
        logger.exception("Failed to get trades for user %s", user_id)
        return []

    _trades_cache[user_id] = (trades, time.monotonic())
    logger.info(
        "Loaded %d trades from database in %.0fms",
        len(trades),
        (time.perf_counter() - started) * 1000,
    )
    return trades


async def get_trade_row(db: AsyncSession, user_id: uuid.UUID, trade_id: str) -> Optional[Trade]:
    result = await db.execute(
        select(Trade).where(Trade.id == _uuid(trade_id), Trade.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_trade(db: AsyncSession, user_id: Optional[uuid.UUID], trade_id: str) -> Optional[TradeOut]:
    if user_id is None:
        return None
    try:
        row = await get_trade_row(db, user_id, trade_id)
    except SQLAlchemyError:
        logger.exception("Failed to get trade %s", trade_id)
        return None
    return row_to_trade(row) if row else None


async def get_trade_by_uuid(
    db: AsyncSession, user_id: Optional[uuid.UUID], trade_uuid: str
) -> Optional[TradeOut]:
    """
    Exact UUID lookup, no legacy conversion.
    Used to check that a trade exists before referencing it.
    """
    if user_id is None:
        return None
    try:
        key = uuid.UUID(trade_uuid)
    except ValueError:
        return None
    try:
        result = await db.execute(select(Trade).where(Trade.id == key, Trade.user_id == user_id))
        row = result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to get trade %s", trade_uuid)
        return None
    return row_to_trade(row) if row else None


# =================================================
# Writes
# =================================================
async def save_trade(db: AsyncSession, user_id: Optional[uuid.UUID], trade: TradeIn) -> bool:
    if user_id is None:
        logger.warning("Cannot save trade %s: user not authenticated", trade.name)
        return False

    values = trade_to_row(trade, user_id)

    try:
        result = await db.execute(
            select(Trade).where(Trade.id == values["id"], Trade.user_id == user_id)
        )
        existing = result.scalar_one_or_none()

        if existing:
            logger.info("Updating existing trade %s", trade.name)
            for key, value in values.items():
                setattr(existing, key, value)
        else:
            logger.info("Inserting new trade %s", trade.name)
            db.add(Trade(**values))

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save trade %s", trade.name)
        return False

    clear_trades_cache(user_id)
    return True


async def save_all_trades(db: AsyncSession, user_id: Optional[uuid.UUID], trades: List[TradeIn]) -> bool:
    """Replace every trade of the user with `trades`."""
    if user_id is None:
        logger.warning("Cannot save trades: user not authenticated")
        return False

    logger.info("Saving %d trades for user %s", len(trades), user_id)

    try:
        await db.execute(delete(Trade).where(Trade.user_id == user_id))

        rows = [trade_to_row(t, user_id) for t in trades]
        total_batches = (len(rows) + INSERT_BATCH_SIZE - 1) // INSERT_BATCH_SIZE
        for i in range(0, len(rows), INSERT_BATCH_SIZE):
            batch = rows[i : i + INSERT_BATCH_SIZE]
            logger.debug(
                "Inserting batch %d/%d (%d trades)",
                i // INSERT_BATCH_SIZE + 1,
                total_batches,
                len(batch),
            )
            await db.execute(insert(Trade), batch)

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save all trades for user %s", user_id)
        return False

    clear_trades_cache(user_id)
    return True


async def delete_trade(db: AsyncSession, user_id: Optional[uuid.UUID], trade_id: str) -> bool:
    if user_id is None:
        logger.warning("Cannot delete trade %s: user not authenticated", trade_id)
        return False

    try:
        result = await db.execute(
            delete(Trade).where(Trade.id == _uuid(trade_id), Trade.user_id == user_id)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete trade %s", trade_id)
        return False

    clear_trades_cache(user_id)
    return result.rowcount > 0
