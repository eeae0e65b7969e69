from datetime import date

import pytest

from tradejournal.models.capital import CapitalChange
from tradejournal.models.enums import PositionStatus
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.analytics.performance import (
    filter_by_period,
    monthly_performance,
    period_start,
    trade_statistics,
)
from tradejournal.services.portfolio import CapitalLedger


def trade(trade_id, day, stock_move=0.0, pl_rs=0.0, status=PositionStatus.CLOSED, **extra):
    return TradeIn(
        id=trade_id,
        date=day,
        stock_move=stock_move,
        pl_rs=pl_rs,
        position_status=status,
        **extra,
    )


def test_monthly_performance_chains_capital():
    ledger = CapitalLedger(
        {2024: 100000.0},
        [CapitalChange(date=date(2024, 3, 10), amount=10000, type="deposit", description="")],
    )
    trades = [trade("a", date(2024, 1, 5), pl_rs=1000), trade("b", date(2024, 3, 20), pl_rs=2000)]

    months = monthly_performance(trades, ledger, 2024)

    assert len(months) == 12
    jan, feb, mar = months[0], months[1], months[2]
    assert jan["month"] == "January"
    assert jan["starting_capital"] == 100000
    assert jan["pl"] == 1000
    assert jan["pl_percent"] == pytest.approx(1.0)
    assert jan["final_capital"] == 101000
    assert feb["starting_capital"] == 101000
    assert feb["final_capital"] == 101000
    assert mar["deposits"] == 10000
    assert mar["final_capital"] == 113000
    assert mar["trades"] == 1
    assert months[11]["final_capital"] == 113000


def test_monthly_performance_cash_basis_books_exit_month():
    ledger = CapitalLedger({2024: 1000.0}, [])
    t = trade(
        "a",
        date(2024, 1, 5),
        avg_entry=10,
        initial_qty=5,
        exit1_price=12,
        exit1_qty=5,
        exit1_date=date(2024, 2, 3),
    )
    months = monthly_performance([t], ledger, 2024, cash_basis=True)

    assert months[0]["pl"] == 0
    assert months[1]["pl"] == pytest.approx(10)


def test_trade_statistics():
    trades = [
        trade("a", date(2024, 1, 1), stock_move=10, pl_rs=100),
        trade("b", date(2024, 1, 2), stock_move=-5, pl_rs=-50),
        trade("c", date(2024, 1, 3), stock_move=20, pl_rs=200),
        trade("d", date(2024, 1, 4), status=PositionStatus.OPEN),
    ]
    stats = trade_statistics(trades)

    assert stats["total_trades"] == 4
    assert stats["closed_trades"] == 3
    assert stats["open_trades"] == 1
    assert stats["wins"] == 2
    assert stats["losses"] == 1
    assert stats["win_rate"] == pytest.approx(66.6667, rel=1e-4)
    assert stats["avg_gain"] == pytest.approx(15)
    assert stats["avg_loss"] == pytest.approx(-5)
    assert stats["expectancy"] == pytest.approx(2 / 3 * 15 + 1 / 3 * -5)
    assert stats["total_pl"] == 250


def test_trade_statistics_empty():
    stats = trade_statistics([])
    assert stats["win_rate"] == 0
    assert stats["expectancy"] == 0


def test_period_start():
    today = date(2024, 6, 15)
    assert period_start("1W", today) == date(2024, 6, 8)
    assert period_start("1M", today) == date(2024, 5, 15)
    assert period_start("3M", today) == date(2024, 3, 15)
    assert period_start("6M", today) == date(2023, 12, 15)
    assert period_start("YTD", today) == date(2024, 1, 1)
    assert period_start("1Y", today) == date(2023, 6, 15)
    assert period_start("ALL", today) is None
    # clamps to month end
    assert period_start("1M", date(2024, 3, 31)) == date(2024, 2, 29)


def test_filter_by_period():
    today = date(2024, 6, 15)
    trades = [
        trade("old", date(2023, 1, 1)),
        trade("recent", date(2024, 6, 10)),
        trade("this-year", date(2024, 2, 1)),
        trade("undated", None),
    ]

    assert [t.id for t in filter_by_period(trades, "1W", today)] == ["recent"]
    assert [t.id for t in filter_by_period(trades, "YTD", today)] == ["recent", "this-year"]
    assert len(filter_by_period(trades, "ALL", today)) == 4

    with pytest.raises(ValueError):
        filter_by_period(trades, "2W", today)
