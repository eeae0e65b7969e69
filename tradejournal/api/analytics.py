import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.api.deps import get_user_id
from tradejournal.db.database import get_db
from tradejournal.services import trade_store, user_data
from tradejournal.services.analytics.drawdown import drawdown_breakdown, max_drawdown_points
from tradejournal.services.analytics.performance import (
    PERIODS,
    filter_by_period,
    monthly_performance,
    trade_statistics,
)
from tradejournal.services.analytics.tax import tax_summary
from tradejournal.services.analytics.top_performers import METRICS, top_and_bottom
from tradejournal.services.portfolio import CapitalLedger, load_ledger

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


async def _ledger(db: AsyncSession, user_id: Optional[uuid.UUID]) -> CapitalLedger:
    if user_id is None:
        return CapitalLedger({}, [])
    return await load_ledger(db, user_id)


def _check_period(period: str) -> str:
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail="period must be one of %s" % ", ".join(PERIODS))
    return period


# =================================================
# DRAWDOWN
# =================================================
@router.get("/drawdown")
async def drawdown(
    year: Optional[int] = None,
    cash_basis: bool = False,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    year = year or date.today().year
    trades = await trade_store.get_all_trades(db, user_id)
    commentary = None
    if user_id is not None:
        commentary = await user_data.get_commentary(db, user_id, year)

    rows = drawdown_breakdown(trades, year, cash_basis, commentary or {})
    return {
        "year": year,
        "max_drawdown": max_drawdown_points([r["cumm_pf_impact"] for r in rows]),
        "rows": rows,
    }


# =================================================
# TAX
# =================================================
@router.get("/tax")
async def tax(
    year: Optional[int] = None,
    cash_basis: bool = False,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    year = year or date.today().year
    trades = await trade_store.get_all_trades(db, user_id)
    taxes = None
    if user_id is not None:
        taxes = await user_data.get_tax_data(db, user_id, year)
    ledger = await _ledger(db, user_id)

    return tax_summary(trades, year, taxes or {}, cash_basis, ledger.as_size_fn())


# =================================================
# TOP / BOTTOM PERFORMERS
# =================================================
@router.get("/top-performers")
async def top_performers(
    metric: str = "stockMove",
    cash_basis: bool = False,
    period: str = "ALL",
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if metric not in METRICS:
        raise HTTPException(status_code=400, detail="metric must be one of %s" % ", ".join(METRICS))
    _check_period(period)

    trades = filter_by_period(await trade_store.get_all_trades(db, user_id), period)
    ledger = await _ledger(db, user_id)

    return top_and_bottom(trades, metric, cash_basis, all_time=period == "ALL", portfolio_size=ledger.as_size_fn())


# =================================================
# MONTHLY PERFORMANCE / STATISTICS
# =================================================
@router.get("/monthly")
async def monthly(
    year: Optional[int] = None,
    cash_basis: bool = False,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    year = year or date.today().year
    trades = await trade_store.get_all_trades(db, user_id)
    ledger = await _ledger(db, user_id)
    return {"year": year, "months": monthly_performance(trades, ledger, year, cash_basis)}


@router.get("/statistics")
async def statistics(
    period: str = "ALL",
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    _check_period(period)
    trades = filter_by_period(await trade_store.get_all_trades(db, user_id), period)
    return {"period": period, **trade_statistics(trades)}
