import uuid
import datetime as dt

from sqlalchemy import Date, DateTime, Float, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from tradejournal.db.database import Base


class CapitalChange(Base):
    __tablename__ = "capital_changes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)

    date: Mapped[dt.date] = mapped_column(Date)
    amount: Mapped[float] = mapped_column(Float)
    type: Mapped[str] = mapped_column(String(16))  # deposit / withdrawal
    description: Mapped[str] = mapped_column(String(255), default="")

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class YearlyStartingCapital(Base):
    __tablename__ = "yearly_starting_capitals"
    __table_args__ = (UniqueConstraint("user_id", "year", name="uq_starting_capital_user_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    year: Mapped[int] = mapped_column(Integer)
    starting_capital: Mapped[float] = mapped_column(Float)

    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
