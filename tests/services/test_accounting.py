from datetime import date

import pytest

from tradejournal.schemas.trade import TradeIn
from tradejournal.services.accounting import (
    accounting_records,
    calculate_trade_pl,
    dedupe_expanded,
    expand_cash_basis,
    original_trade_id,
    total_cash_pf_impact,
)


def size_fn(_on):
    return 10000.0


def make_trade(**overrides):
    values = dict(
        id="t1",
        date=date(2024, 1, 1),
        name="ACME",
        entry=100,
        avg_entry=100,
        initial_qty=10,
        exit1_price=110,
        exit1_qty=5,
        exit1_date=date(2024, 2, 10),
        exit2_price=120,
        exit2_qty=5,
        exit2_date=date(2024, 3, 5),
        pl_rs=150,
        pf_impact=1.5,
    )
    values.update(overrides)
    return TradeIn(**values)


def test_cash_basis_books_each_exit_on_its_date():
    records = expand_cash_basis(make_trade(), size_fn)

    assert [r.id for r in records] == ["t1_exit_1", "t1_exit_2"]
    assert [r.date for r in records] == [date(2024, 2, 10), date(2024, 3, 5)]
    assert [r.pl for r in records] == pytest.approx([50, 100])
    assert [r.pf_impact for r in records] == pytest.approx([0.5, 1.0])
    assert all(r.cash_basis_exit for r in records)
    assert {r.original_id for r in records} == {"t1"}


def test_exit_without_date_falls_back_to_entry_date():
    records = expand_cash_basis(make_trade(exit1_date=None), size_fn)
    assert records[0].date == date(2024, 1, 1)


def test_open_trade_has_no_cash_records():
    trade = make_trade(exit1_price=0, exit1_qty=0, exit2_price=0, exit2_qty=0)
    assert expand_cash_basis(trade, size_fn) == []


def test_accrual_records_use_stored_pl():
    records = accounting_records([make_trade()], cash_basis=False, portfolio_size=size_fn)

    assert len(records) == 1
    assert records[0].id == "t1"
    assert records[0].date == date(2024, 1, 1)
    assert records[0].pl == 150
    assert records[0].pf_impact == 1.5


def test_calculate_trade_pl_both_methods():
    trade = make_trade(pl_rs=140)
    assert calculate_trade_pl(trade, False, size_fn) == 140
    assert calculate_trade_pl(trade, True, size_fn) == pytest.approx(150)
    assert total_cash_pf_impact(trade, size_fn) == pytest.approx(1.5)


def test_dedupe_keeps_first_record_per_trade():
    records = accounting_records(
        [make_trade(), make_trade(id="t2")], cash_basis=True, portfolio_size=size_fn
    )
    unique = dedupe_expanded(records)

    assert [r.id for r in unique] == ["t1_exit_1", "t2_exit_1"]


def test_original_trade_id():
    assert original_trade_id("abc_exit_2") == "abc"
    assert original_trade_id("abc") == "abc"
