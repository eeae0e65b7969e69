import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.api.deps import get_user_id, require_user_id
from tradejournal.db.database import get_db
from tradejournal.models.capital import CapitalChange
from tradejournal.schemas.capital import (
    CapitalChangeCreate,
    CapitalChangeOut,
    CapitalChangeUpdate,
    PortfolioSizeOut,
    SetupStatusOut,
    StartingCapitalIn,
    StartingCapitalOut,
)
from tradejournal.services import portfolio

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


async def _get_change_or_404(db: AsyncSession, user_id: uuid.UUID, change_id: uuid.UUID) -> CapitalChange:
    change = await portfolio.get_capital_change(db, user_id, change_id)
    if not change:
        raise HTTPException(status_code=404, detail="Capital change not found")
    return change


# =================================================
# Capital changes
# =================================================
@router.get("/capital-changes", response_model=List[CapitalChangeOut])
async def list_capital_changes(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return []
    return await portfolio.list_capital_changes(db, user_id)


@router.post("/capital-changes", response_model=CapitalChangeOut, status_code=201)
async def add_capital_change(
    payload: CapitalChangeCreate,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    change = await portfolio.add_capital_change(db, user_id, payload)
    if change is None:
        raise HTTPException(status_code=500, detail="Failed to save capital change")
    return change


@router.put("/capital-changes/{change_id}", response_model=CapitalChangeOut)
async def update_capital_change(
    change_id: uuid.UUID,
    payload: CapitalChangeUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    change = await _get_change_or_404(db, user_id, change_id)
    updated = await portfolio.update_capital_change(db, change, payload)
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update capital change")
    return updated


@router.delete("/capital-changes/{change_id}")
async def delete_capital_change(
    change_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    await _get_change_or_404(db, user_id, change_id)
    if not await portfolio.delete_capital_change(db, user_id, change_id):
        raise HTTPException(status_code=500, detail="Failed to delete capital change")
    return {"success": True}


# =================================================
# Starting capital
# =================================================
@router.get("/starting-capitals", response_model=List[StartingCapitalOut])
async def list_starting_capitals(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return []
    return await portfolio.list_starting_capitals(db, user_id)


@router.put("/starting-capitals", response_model=StartingCapitalOut)
async def set_starting_capital(
    payload: StartingCapitalIn,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    row = await portfolio.set_starting_capital(db, user_id, payload)
    if row is None:
        raise HTTPException(status_code=500, detail="Failed to save starting capital")
    return row


# =================================================
# Derived
# =================================================
@router.get("/size", response_model=PortfolioSizeOut)
async def portfolio_size(
    year: Optional[int] = Query(default=None, ge=1900, le=2200),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    today = date.today()
    year = year or today.year
    month = month or today.month

    if user_id is None:
        ledger = portfolio.CapitalLedger({}, [])
    else:
        ledger = await portfolio.load_ledger(db, user_id)

    return PortfolioSizeOut(year=year, month=month, size=ledger.size_for_month(year, month))


@router.get("/setup-status", response_model=SetupStatusOut)
async def setup_status(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return SetupStatusOut(needs_setup=True, years_configured=[])
    rows = await portfolio.list_starting_capitals(db, user_id)
    return SetupStatusOut(needs_setup=not rows, years_configured=[r.year for r in rows])
