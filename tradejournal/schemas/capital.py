import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tradejournal.models.enums import CapitalChangeType


class CapitalChangeCreate(BaseModel):
    date: dt.date
    amount: float = Field(..., gt=0)
    type: CapitalChangeType
    description: str = ""


class CapitalChangeUpdate(BaseModel):
    date: Optional[dt.date] = None
    amount: Optional[float] = Field(default=None, gt=0)
    type: Optional[CapitalChangeType] = None
    description: Optional[str] = None


class CapitalChangeOut(CapitalChangeCreate):
    id: uuid.UUID

    model_config = ConfigDict(from_attributes=True)


class StartingCapitalIn(BaseModel):
    year: int = Field(..., ge=1900, le=2200)
    starting_capital: float = Field(..., ge=0)


class StartingCapitalOut(StartingCapitalIn):
    model_config = ConfigDict(from_attributes=True)


class PortfolioSizeOut(BaseModel):
    year: int
    month: int
    size: float


class SetupStatusOut(BaseModel):
    needs_setup: bool
    years_configured: list[int]
