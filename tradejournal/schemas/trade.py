import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tradejournal.models.enums import PositionStatus, TradeSide

DATE_FIELDS = (
    "date",
    "pyramid1_date",
    "pyramid2_date",
    "exit1_date",
    "exit2_date",
    "exit3_date",
)


class CamelModel(BaseModel):
    # Clients send the journal's camelCase keys; snake_case is accepted too
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TradeIn(CamelModel):
    id: str = Field(..., min_length=1)
    trade_no: str = ""
    date: Optional[dt.date] = None
    name: str = ""

    entry: float = 0
    avg_entry: float = 0
    sl: float = 0
    tsl: float = 0
    buy_sell: TradeSide = TradeSide.BUY
    cmp: float = 0

    setup: str = ""
    base_duration: str = ""
    initial_qty: float = 0

    pyramid1_price: float = 0
    pyramid1_qty: float = 0
    pyramid1_date: Optional[dt.date] = None
    pyramid2_price: float = 0
    pyramid2_qty: float = 0
    pyramid2_date: Optional[dt.date] = None

    position_size: float = 0
    allocation: float = 0
    sl_percent: float = 0

    exit1_price: float = 0
    exit1_qty: float = 0
    exit1_date: Optional[dt.date] = None
    exit2_price: float = 0
    exit2_qty: float = 0
    exit2_date: Optional[dt.date] = None
    exit3_price: float = 0
    exit3_qty: float = 0
    exit3_date: Optional[dt.date] = None

    open_qty: float = 0
    exited_qty: float = 0
    avg_exit_price: float = 0
    stock_move: float = 0
    reward_risk: float = 0
    holding_days: int = 0
    position_status: PositionStatus = PositionStatus.OPEN
    realised_amount: float = 0
    pl_rs: float = 0
    pf_impact: float = 0
    cumm_pf: float = 0

    plan_followed: bool = False
    exit_trigger: str = ""
    proficiency_growth_areas: str = ""
    sector: str = ""
    open_heat: float = 0
    notes: str = ""

    chart_attachments: Dict[str, Any] = Field(default_factory=dict)
    user_edited_fields: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("_userEditedFields", "userEditedFields", "user_edited_fields"),
        serialization_alias="_userEditedFields",
    )
    cmp_auto_fetched: bool = Field(
        default=False,
        validation_alias=AliasChoices("_cmpAutoFetched", "cmpAutoFetched", "cmp_auto_fetched"),
        serialization_alias="_cmpAutoFetched",
    )
    needs_recalculation: bool = Field(
        default=False,
        validation_alias=AliasChoices("_needsRecalculation", "needsRecalculation", "needs_recalculation"),
        serialization_alias="_needsRecalculation",
    )

    @field_validator(*DATE_FIELDS, mode="before")
    @classmethod
    def _blank_date_is_none(cls, v):
        if v == "" or v is None:
            return None
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v

    @field_validator("chart_attachments", mode="before")
    @classmethod
    def _null_attachments(cls, v):
        return v or {}

    @field_validator("user_edited_fields", mode="before")
    @classmethod
    def _null_edited_fields(cls, v):
        return v or []


class TradeOut(TradeIn):
    pass


class SaveResult(BaseModel):
    success: bool
    count: int = 0
