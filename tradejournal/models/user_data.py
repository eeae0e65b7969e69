# Per-user JSON documents. One row per user, per (user, year) or per (user, key).

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from tradejournal.db.database import Base


class _UserDocument:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class UserPreferences(_UserDocument, Base):
    __tablename__ = "user_preferences"
    __table_args__ = (UniqueConstraint("user_id", name="uq_user_preferences_user"),)

    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class TradeSettings(_UserDocument, Base):
    __tablename__ = "trade_settings"
    __table_args__ = (UniqueConstraint("user_id", name="uq_trade_settings_user"),)

    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class DashboardConfig(_UserDocument, Base):
    __tablename__ = "dashboard_config"
    __table_args__ = (UniqueConstraint("user_id", name="uq_dashboard_config_user"),)

    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class MilestonesData(_UserDocument, Base):
    __tablename__ = "milestones_data"
    __table_args__ = (UniqueConstraint("user_id", name="uq_milestones_data_user"),)

    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class TaxData(_UserDocument, Base):
    __tablename__ = "tax_data"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_tax_data_user_year"),)

    year: Mapped[int] = mapped_column(Integer)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class CommentaryData(_UserDocument, Base):
    __tablename__ = "commentary_data"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_commentary_data_user_year"),)

    year: Mapped[int] = mapped_column(Integer)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)


class MiscData(_UserDocument, Base):
    __tablename__ = "misc_data"
    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_misc_data_user_key"),)

    key: Mapped[str] = mapped_column(String(128))
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
