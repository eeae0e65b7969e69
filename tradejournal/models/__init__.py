# tradejournal/models/__init__.py
# Central import registry for Alembic

from tradejournal.models.trade import Trade
from tradejournal.models.chart_image import ChartImageBlob
from tradejournal.models.capital import CapitalChange, YearlyStartingCapital
from tradejournal.models.user_data import (
    CommentaryData,
    DashboardConfig,
    MilestonesData,
    MiscData,
    TaxData,
    TradeSettings,
    UserPreferences,
)

__all__ = [
    "Trade",
    "ChartImageBlob",
    "CapitalChange",
    "YearlyStartingCapital",
    "UserPreferences",
    "TradeSettings",
    "DashboardConfig",
    "MilestonesData",
    "TaxData",
    "CommentaryData",
    "MiscData",
]
