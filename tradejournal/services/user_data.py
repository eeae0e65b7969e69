"""
Per-user JSON documents: preferences, trade settings, dashboard config,
milestones, yearly tax and commentary data, and a free-form misc store.
"""

import logging
import uuid
from typing import Any, Optional, Type

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.models.capital import CapitalChange, YearlyStartingCapital
from tradejournal.models.chart_image import ChartImageBlob
from tradejournal.models.trade import Trade
from tradejournal.models.user_data import (
    CommentaryData,
    DashboardConfig,
    MilestonesData,
    MiscData,
    TaxData,
    TradeSettings,
    UserPreferences,
)
from tradejournal.services.trade_store import clear_trades_cache

logger = logging.getLogger(__name__)

USER_TABLES = (
    Trade,
    ChartImageBlob,
    CapitalChange,
    YearlyStartingCapital,
    UserPreferences,
    TradeSettings,
    DashboardConfig,
    MilestonesData,
    TaxData,
    CommentaryData,
    MiscData,
)


# =================================================
# Single document per user
# =================================================
async def _get_document(db: AsyncSession, model: Type, user_id: uuid.UUID) -> Optional[Any]:
    try:
        result = await db.execute(select(model.data).where(model.user_id == user_id))
        return result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to load %s for user %s", model.__tablename__, user_id)
        return None


async def _save_document(db: AsyncSession, model: Type, user_id: uuid.UUID, data: Any) -> bool:
    try:
        result = await db.execute(select(model).where(model.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            db.add(model(user_id=user_id, data=data))
        else:
            row.data = data
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save %s for user %s", model.__tablename__, user_id)
        return False
    return True


async def get_user_preferences(db: AsyncSession, user_id: uuid.UUID) -> Optional[Any]:
    return await _get_document(db, UserPreferences, user_id)


async def save_user_preferences(db: AsyncSession, user_id: uuid.UUID, data: Any) -> bool:
    return await _save_document(db, UserPreferences, user_id, data)


async def get_trade_settings(db: AsyncSession, user_id: uuid.UUID) -> Optional[Any]:
    return await _get_document(db, TradeSettings, user_id)


async def save_trade_settings(db: AsyncSession, user_id: uuid.UUID, data: Any) -> bool:
    return await _save_document(db, TradeSettings, user_id, data)


async def get_dashboard_config(db: AsyncSession, user_id: uuid.UUID) -> Optional[Any]:
    return await _get_document(db, DashboardConfig, user_id)


async def save_dashboard_config(db: AsyncSession, user_id: uuid.UUID, data: Any) -> bool:
    return await _save_document(db, DashboardConfig, user_id, data)


async def get_milestones(db: AsyncSession, user_id: uuid.UUID) -> Optional[Any]:
    return await _get_document(db, MilestonesData, user_id)


async def save_milestones(db: AsyncSession, user_id: uuid.UUID, data: Any) -> bool:
    return await _save_document(db, MilestonesData, user_id, data)


# =================================================
# Yearly documents
# =================================================
async def _get_yearly(db: AsyncSession, model: Type, user_id: uuid.UUID, year: int) -> Optional[Any]:
    try:
        result = await db.execute(
            select(model.data).where(model.user_id == user_id, model.year == year)
        )
        return result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to load %s %d for user %s", model.__tablename__, year, user_id)
        return None


async def _save_yearly(db: AsyncSession, model: Type, user_id: uuid.UUID, year: int, data: Any) -> bool:
    try:
        result = await db.execute(
            select(model).where(model.user_id == user_id, model.year == year)
        )
        row = result.scalar_one_or_none()
        if row is None:
            db.add(model(user_id=user_id, year=year, data=data))
        else:
            row.data = data
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save %s %d for user %s", model.__tablename__, year, user_id)
        return False
    return True


async def get_tax_data(db: AsyncSession, user_id: uuid.UUID, year: int) -> Optional[Any]:
    return await _get_yearly(db, TaxData, user_id, year)


async def save_tax_data(db: AsyncSession, user_id: uuid.UUID, year: int, data: Any) -> bool:
    return await _save_yearly(db, TaxData, user_id, year, data)


async def get_commentary(db: AsyncSession, user_id: uuid.UUID, year: int) -> Optional[Any]:
    return await _get_yearly(db, CommentaryData, user_id, year)


async def save_commentary(db: AsyncSession, user_id: uuid.UUID, year: int, data: Any) -> bool:
    return await _save_yearly(db, CommentaryData, user_id, year, data)


# =================================================
# Misc key/value
# =================================================
async def get_misc_data(db: AsyncSession, user_id: uuid.UUID, key: str) -> Optional[Any]:
    try:
        result = await db.execute(
            select(MiscData.value).where(MiscData.user_id == user_id, MiscData.key == key)
        )
        return result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to load misc data %s", key)
        return None


async def save_misc_data(db: AsyncSession, user_id: uuid.UUID, key: str, value: Any) -> bool:
    try:
        result = await db.execute(
            select(MiscData).where(MiscData.user_id == user_id, MiscData.key == key)
        )
        row = result.scalar_one_or_none()
        if row is None:
            db.add(MiscData(user_id=user_id, key=key, value=value))
        else:
            row.value = value
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to save misc data %s", key)
        return False
    return True


async def delete_misc_data(db: AsyncSession, user_id: uuid.UUID, key: str) -> bool:
    try:
        result = await db.execute(
            delete(MiscData).where(MiscData.user_id == user_id, MiscData.key == key)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete misc data %s", key)
        return False
    return result.rowcount > 0


# =================================================
# Everything
# =================================================
async def clear_all_data(db: AsyncSession, user_id: uuid.UUID) -> bool:
    """Delete every row the user owns, in one transaction."""
    logger.warning("Clearing all data for user %s", user_id)
    try:
        for model in USER_TABLES:
            await db.execute(delete(model).where(model.user_id == user_id))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to clear data for user %s", user_id)
        return False

    clear_trades_cache(user_id)
    return True
