import uuid
import datetime as dt
from typing import Any, Dict, List

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from tradejournal.db.database import Base


class Trade(Base):
    __tablename__ = "trades"

    # Legacy ids map deterministically, so the key is per user
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, index=True)

    # Original non-UUID id from older client data (see services.ids)
    legacy_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    trade_no: Mapped[str] = mapped_column(String(32), default="")
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    name: Mapped[str] = mapped_column(String(64), default="")

    entry: Mapped[float] = mapped_column(Float, default=0.0)
    avg_entry: Mapped[float] = mapped_column(Float, default=0.0)
    sl: Mapped[float] = mapped_column(Float, default=0.0)
    tsl: Mapped[float] = mapped_column(Float, default=0.0)
    buy_sell: Mapped[str] = mapped_column(String(8), default="Buy")
    cmp: Mapped[float] = mapped_column(Float, default=0.0)

    setup: Mapped[str] = mapped_column(String(128), default="")
    base_duration: Mapped[str] = mapped_column(String(64), default="")
    initial_qty: Mapped[float] = mapped_column(Float, default=0.0)

    # Pyramids (adds)
    pyramid1_price: Mapped[float] = mapped_column(Float, default=0.0)
    pyramid1_qty: Mapped[float] = mapped_column(Float, default=0.0)
    pyramid1_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    pyramid2_price: Mapped[float] = mapped_column(Float, default=0.0)
    pyramid2_qty: Mapped[float] = mapped_column(Float, default=0.0)
    pyramid2_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    position_size: Mapped[float] = mapped_column(Float, default=0.0)
    allocation: Mapped[float] = mapped_column(Float, default=0.0)
    sl_percent: Mapped[float] = mapped_column(Float, default=0.0)

    # Exits (up to three legs)
    exit1_price: Mapped[float] = mapped_column(Float, default=0.0)
    exit1_qty: Mapped[float] = mapped_column(Float, default=0.0)
    exit1_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    exit2_price: Mapped[float] = mapped_column(Float, default=0.0)
    exit2_qty: Mapped[float] = mapped_column(Float, default=0.0)
    exit2_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    exit3_price: Mapped[float] = mapped_column(Float, default=0.0)
    exit3_qty: Mapped[float] = mapped_column(Float, default=0.0)
    exit3_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    open_qty: Mapped[float] = mapped_column(Float, default=0.0)
    exited_qty: Mapped[float] = mapped_column(Float, default=0.0)
    avg_exit_price: Mapped[float] = mapped_column(Float, default=0.0)
    stock_move: Mapped[float] = mapped_column(Float, default=0.0)
    reward_risk: Mapped[float] = mapped_column(Float, default=0.0)
    holding_days: Mapped[int] = mapped_column(Integer, default=0)
    position_status: Mapped[str] = mapped_column(String(16), default="Open")
    realised_amount: Mapped[float] = mapped_column(Float, default=0.0)
    pl_rs: Mapped[float] = mapped_column(Float, default=0.0)
    pf_impact: Mapped[float] = mapped_column(Float, default=0.0)
    cumm_pf: Mapped[float] = mapped_column(Float, default=0.0)

    plan_followed: Mapped[bool] = mapped_column(Boolean, default=False)
    exit_trigger: Mapped[str] = mapped_column(String(128), default="")
    proficiency_growth_areas: Mapped[str] = mapped_column(String(256), default="")
    sector: Mapped[str] = mapped_column(String(64), default="")
    open_heat: Mapped[float] = mapped_column(Float, default=0.0)
    notes: Mapped[str] = mapped_column(Text, default="")

    chart_attachments: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    user_edited_fields: Mapped[List[str] | None] = mapped_column(JSON, nullable=True)
    cmp_auto_fetched: Mapped[bool] = mapped_column(Boolean, default=False)
    needs_recalculation: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
