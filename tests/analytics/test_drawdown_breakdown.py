from datetime import date

import pytest

from tradejournal.models.enums import PositionStatus
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.analytics.drawdown import drawdown_breakdown, max_drawdown_points


def closed(day, cumm_pf, name="ACME", status=PositionStatus.CLOSED, **extra):
    return TradeIn(
        id=f"t{day.isoformat()}",
        date=day,
        name=name,
        cumm_pf=cumm_pf,
        pf_impact=0.5,
        position_status=status,
        **extra,
    )


CURVE = [1.0, 3.0, 2.0, -4.0, 3.0, 20.0, 4.0]


def curve_trades():
    return [closed(date(2024, 1, i + 1), pf) for i, pf in enumerate(CURVE)]


def test_commentary_follows_the_equity_curve():
    rows = drawdown_breakdown(curve_trades(), 2024)

    assert [r["commentary_type"] for r in rows] == [
        "start",
        "peak",
        "mild",
        "moderate",
        "recovery",
        "peak",
        "severe",
    ]
    assert rows[0]["commentary"] == "DD started"
    assert rows[1]["commentary"] == "Touching new peak equity highs • Portfolio up 2.00%"
    assert rows[2]["commentary"] == "DD going on • Portfolio down 1.00%"
    assert rows[4]["commentary"].startswith("Recovery of 7.00 from dd low of 3.00")
    assert rows[6]["commentary"].startswith("DD in full force (SEVERE DD - RECORD DD IN 2024)")


def test_drawdown_is_points_below_peak():
    rows = drawdown_breakdown(curve_trades(), 2024)

    assert [r["drawdown_from_peak"] for r in rows] == pytest.approx([0, 0, 1, 7, 0, 0, 16])
    assert [r["is_new_peak"] for r in rows] == [False, True, False, False, False, True, False]
    assert rows[3]["cumm_pf_impact"] == -4.0
    assert rows[3]["stock_pf_impact"] == 0.5


def test_small_moves_get_no_suffix():
    trades = [closed(date(2024, 1, 1), 1.0), closed(date(2024, 1, 2), 1.2)]
    rows = drawdown_breakdown(trades, 2024)
    assert rows[1]["commentary"] == "Touching new peak equity highs"


def test_only_closed_trades_of_the_year_sorted_by_date():
    trades = [
        closed(date(2024, 3, 1), 2.0, name="LATE"),
        closed(date(2024, 1, 1), 1.0, name="EARLY"),
        closed(date(2024, 2, 1), 1.5, name="PART", status=PositionStatus.PARTIAL),
        closed(date(2024, 2, 2), 9.0, name="OPEN", status=PositionStatus.OPEN),
        closed(date(2023, 12, 31), 9.0, name="OLD"),
    ]
    rows = drawdown_breakdown(trades, 2024)
    assert [r["symbol"] for r in rows] == ["EARLY", "PART", "LATE"]


def test_custom_commentary_overrides_by_trade_key():
    rows = drawdown_breakdown(curve_trades(), 2024)
    key = rows[2]["trade_key"]
    assert key == "2024-01-03-ACME-2"

    rows = drawdown_breakdown(curve_trades(), 2024, custom_commentary={key: "Bad week"})
    assert rows[2]["commentary"] == "Bad week"
    assert rows[2]["commentary_type"] == "custom"
    assert rows[2]["system_commentary"].startswith("DD going on")


def test_cash_basis_shows_first_exit_date():
    trade = closed(date(2024, 1, 1), 1.0, exit1_price=10, exit1_qty=1, exit1_date=date(2024, 2, 5))
    rows = drawdown_breakdown([trade], 2024, cash_basis=True)
    assert rows[0]["date"] == date(2024, 2, 5)
    assert rows[0]["accounting_method"] == "Cash"


def test_empty_year():
    assert drawdown_breakdown(curve_trades(), 2022) == []


def test_max_drawdown_points():
    assert max_drawdown_points(CURVE) == pytest.approx(16)
    assert max_drawdown_points([]) == 0
    # never above zero: no peak to fall from
    assert max_drawdown_points([-1.0, -3.0]) == 0
