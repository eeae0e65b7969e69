"""
Capital tracking: yearly starting capital plus deposits/withdrawals.

Portfolio size for a month = that year's starting capital, adjusted by
the capital changes of that year dated on or before the month's last day.
"""

import calendar
import logging
import uuid
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.config import get_settings
from tradejournal.models.capital import CapitalChange, YearlyStartingCapital
from tradejournal.models.enums import CapitalChangeType
from tradejournal.schemas.capital import CapitalChangeCreate, CapitalChangeUpdate, StartingCapitalIn
from tradejournal.services.trade_calculations import PortfolioSizeFn

logger = logging.getLogger(__name__)


# =================================================
# Capital changes
# =================================================
async def list_capital_changes(db: AsyncSession, user_id: uuid.UUID) -> List[CapitalChange]:
    try:
        result = await db.execute(
            select(CapitalChange)
            .where(CapitalChange.user_id == user_id)
            .order_by(CapitalChange.date.asc(), CapitalChange.created_at.asc())
        )
        return list(result.scalars().all())
    except SQLAlchemyError:
        logger.exception("Failed to load capital changes for user %s", user_id)
        return []


async def add_capital_change(
    db: AsyncSession, user_id: uuid.UUID, payload: CapitalChangeCreate
) -> Optional[CapitalChange]:
    change = CapitalChange(
        user_id=user_id,
        date=payload.date,
        amount=payload.amount,
        type=payload.type.value,
        description=payload.description,
    )
    try:
        db.add(change)
        await db.commit()
        await db.refresh(change)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to record capital change for user %s", user_id)
        return None

    logger.info("Recorded %s of %.2f on %s", change.type, change.amount, change.date)
    return change


async def get_capital_change(
    db: AsyncSession, user_id: uuid.UUID, change_id: uuid.UUID
) -> Optional[CapitalChange]:
    try:
        result = await db.execute(
            select(CapitalChange).where(CapitalChange.id == change_id, CapitalChange.user_id == user_id)
        )
        return result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to load capital change %s", change_id)
        return None


async def update_capital_change(
    db: AsyncSession, change: CapitalChange, payload: CapitalChangeUpdate
) -> Optional[CapitalChange]:
    updates = payload.model_dump(exclude_unset=True)
    if "type" in updates and updates["type"] is not None:
        updates["type"] = CapitalChangeType(updates["type"]).value
    # Read before a rollback expires the row
    change_id = change.id
    try:
        for key, value in updates.items():
            if value is not None:
                setattr(change, key, value)
        await db.commit()
        await db.refresh(change)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to update capital change %s", change_id)
        return None
    return change


async def delete_capital_change(db: AsyncSession, user_id: uuid.UUID, change_id: uuid.UUID) -> bool:
    try:
        result = await db.execute(
            delete(CapitalChange).where(CapitalChange.id == change_id, CapitalChange.user_id == user_id)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to delete capital change %s", change_id)
        return False
    return result.rowcount > 0


# =================================================
# Yearly starting capital
# =================================================
async def list_starting_capitals(db: AsyncSession, user_id: uuid.UUID) -> List[YearlyStartingCapital]:
    try:
        result = await db.execute(
            select(YearlyStartingCapital)
            .where(YearlyStartingCapital.user_id == user_id)
            .order_by(YearlyStartingCapital.year.asc())
        )
        return list(result.scalars().all())
    except SQLAlchemyError:
        logger.exception("Failed to read starting capitals for user %s", user_id)
        return []


async def set_starting_capital(
    db: AsyncSession, user_id: uuid.UUID, payload: StartingCapitalIn
) -> Optional[YearlyStartingCapital]:
    try:
        result = await db.execute(
            select(YearlyStartingCapital).where(
                YearlyStartingCapital.user_id == user_id,
                YearlyStartingCapital.year == payload.year,
            )
        )
        row = result.scalar_one_or_none()
        if row:
            row.starting_capital = payload.starting_capital
        else:
            row = YearlyStartingCapital(
                user_id=user_id,
                year=payload.year,
                starting_capital=payload.starting_capital,
            )
            db.add(row)
        await db.commit()
        await db.refresh(row)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to set %d starting capital for user %s", payload.year, user_id)
        return None
    return row


async def needs_setup(db: AsyncSession, user_id: uuid.UUID) -> bool:
    """True until at least one yearly starting capital is configured."""
    return len(await list_starting_capitals(db, user_id)) == 0


# =================================================
# Portfolio size
# =================================================
class CapitalLedger:
    """In-memory view of a user's capital used by calculations/analytics."""

    def __init__(
        self,
        starting_capitals: Dict[int, float],
        changes: List[CapitalChange],
        default_size: Optional[float] = None,
    ):
        self.starting_capitals = dict(starting_capitals)
        self.changes = sorted(changes, key=lambda c: c.date)
        self.default_size = (
            default_size if default_size is not None else get_settings().default_portfolio_size
        )

    def starting_capital(self, year: int) -> float:
        if year in self.starting_capitals:
            return self.starting_capitals[year]
        return self.default_size

    def changes_between(self, start: date, end: date) -> List[CapitalChange]:
        return [c for c in self.changes if start <= c.date <= end]

    @staticmethod
    def signed_amount(change: CapitalChange) -> float:
        if change.type == CapitalChangeType.WITHDRAWAL.value:
            return -change.amount
        return change.amount

    def size_for_month(self, year: int, month: int) -> float:
        last_day = calendar.monthrange(year, month)[1]
        net = sum(
            self.signed_amount(c)
            for c in self.changes_between(date(year, 1, 1), date(year, month, last_day))
        )
        return self.starting_capital(year) + net

    def size_on(self, on: Optional[date]) -> float:
        if on is None:
            on = date.today()
        return self.size_for_month(on.year, on.month)

    def as_size_fn(self) -> PortfolioSizeFn:
        return self.size_on


async def load_ledger(db: AsyncSession, user_id: uuid.UUID) -> CapitalLedger:
    starting = await list_starting_capitals(db, user_id)
    changes = await list_capital_changes(db, user_id)
    return CapitalLedger({row.year: row.starting_capital for row in starting}, changes)
