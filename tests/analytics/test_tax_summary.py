from datetime import date

import pytest

from tradejournal.models.enums import PositionStatus
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.analytics.tax import MONTHS, monthly_tax_map, tax_summary


def trade(trade_id, day, pl_rs, cumm_pf, **extra):
    return TradeIn(
        id=trade_id,
        date=day,
        pl_rs=pl_rs,
        cumm_pf=cumm_pf,
        position_status=PositionStatus.CLOSED,
        **extra,
    )


def test_monthly_tax_map_fills_every_month():
    taxes = monthly_tax_map({"January": 100, "March": "50", "May": None, "June": "oops"})

    assert list(taxes) == MONTHS
    assert taxes["January"] == 100
    assert taxes["March"] == 50
    assert taxes["May"] == 0
    assert taxes["June"] == 0
    assert taxes["December"] == 0


def test_accrual_tax_summary():
    trades = [
        trade("a", date(2024, 1, 5), 1000, 2.0),
        trade("b", date(2024, 2, 5), -200, 1.0),
        trade("c", date(2023, 6, 1), 500, 9.0),
    ]
    summary = tax_summary(trades, 2024, {"January": 100, "March": 50})

    assert summary["gross_pl"] == 800
    assert summary["total_taxes"] == 150
    assert summary["net_pl"] == 650
    assert summary["max_cumm_pf"] == 2.0
    assert summary["min_cumm_pf"] == 1.0
    assert summary["max_drawdown"] == pytest.approx(1.0)
    assert summary["taxes_by_month"]["February"] == 0


def test_cash_basis_gross_pl_uses_exit_legs():
    t = trade(
        "a",
        date(2024, 1, 5),
        999,
        1.0,
        avg_entry=100,
        exit1_price=110,
        exit1_qty=2,
        exit1_date=date(2024, 2, 1),
    )
    summary = tax_summary([t], 2024, cash_basis=True)
    assert summary["gross_pl"] == pytest.approx(20)
    assert summary["accounting_method"] == "cash"


def test_empty_year_summary():
    summary = tax_summary([], 2024)
    assert summary["gross_pl"] == 0
    assert summary["max_drawdown"] == 0
    assert summary["tax_percent_of_gross"] == 0
