import uuid
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.api.deps import get_chart_cache, get_user_id, require_user_id
from tradejournal.db.database import get_db
from tradejournal.services import user_data
from tradejournal.services.charts.local_cache import LocalBlobCache

router = APIRouter(prefix="/api/user-data", tags=["user-data"])


def _saved(ok: bool) -> dict:
    if not ok:
        raise HTTPException(status_code=500, detail="Failed to save user data")
    return {"success": True}


# =================================================
# Documents
# =================================================
@router.get("/preferences")
async def get_preferences(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_user_preferences(db, user_id)


@router.put("/preferences")
async def put_preferences(
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_user_preferences(db, user_id, payload))


@router.get("/trade-settings")
async def get_trade_settings(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_trade_settings(db, user_id)


@router.put("/trade-settings")
async def put_trade_settings(
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_trade_settings(db, user_id, payload))


@router.get("/dashboard-config")
async def get_dashboard_config(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_dashboard_config(db, user_id)


@router.put("/dashboard-config")
async def put_dashboard_config(
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_dashboard_config(db, user_id, payload))


@router.get("/milestones")
async def get_milestones(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_milestones(db, user_id)


@router.put("/milestones")
async def put_milestones(
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_milestones(db, user_id, payload))


# =================================================
# Yearly
# =================================================
@router.get("/tax/{year}")
async def get_tax_data(
    year: int,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_tax_data(db, user_id, year)


@router.put("/tax/{year}")
async def put_tax_data(
    year: int,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_tax_data(db, user_id, year, payload))


@router.get("/commentary/{year}")
async def get_commentary(
    year: int,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_commentary(db, user_id, year)


@router.put("/commentary/{year}")
async def put_commentary(
    year: int,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_commentary(db, user_id, year, payload))


# =================================================
# Misc
# =================================================
@router.get("/misc/{key}")
async def get_misc(
    key: str,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
):
    if user_id is None:
        return None
    return await user_data.get_misc_data(db, user_id, key)


@router.put("/misc/{key}")
async def put_misc(
    key: str,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    return _saved(await user_data.save_misc_data(db, user_id, key, payload))


@router.delete("/misc/{key}")
async def delete_misc(
    key: str,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
):
    if not await user_data.delete_misc_data(db, user_id, key):
        raise HTTPException(status_code=404, detail="Key not found")
    return {"success": True}


@router.delete("")
async def clear_all(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(require_user_id),
    cache: LocalBlobCache = Depends(get_chart_cache),
):
    """Wipe every stored row of the user, cached chart images included."""
    if not await user_data.clear_all_data(db, user_id):
        raise HTTPException(status_code=500, detail="Failed to clear user data")
    await cache.clear(user_id)
    return {"success": True}
