import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.db.database import get_db
from tradejournal.services.charts.local_cache import LocalBlobCache
from tradejournal.services.charts.service import ChartImageService


async def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[uuid.UUID]:
    """Signed-in user from the X-User-Id header; None means guest."""
    if not x_user_id:
        return None
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")


async def require_user_id(user_id: Optional[uuid.UUID] = Depends(get_user_id)) -> uuid.UUID:
    if user_id is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user_id


def get_chart_cache() -> LocalBlobCache:
    return LocalBlobCache()


async def get_chart_service(
    db: AsyncSession = Depends(get_db),
    user_id: Optional[uuid.UUID] = Depends(get_user_id),
    cache: LocalBlobCache = Depends(get_chart_cache),
) -> ChartImageService:
    return ChartImageService(db, user_id, cache)
