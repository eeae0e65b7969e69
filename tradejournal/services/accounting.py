"""
Accounting methods.

Accrual: a trade's whole P/L belongs to its entry date.
Cash: each exit leg is booked on its own exit date. Expanded records carry
ids of the form "<trade id>_exit_<n>".
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from tradejournal.models.enums import TradeSide
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.trade_calculations import PortfolioSizeFn, calc_avg_entry

EXIT_SUFFIX = "_exit_"


@dataclass
class AccountingRecord:
    id: str
    trade: TradeIn
    date: Optional[date]
    pl: float
    pf_impact: float
    cash_basis_exit: bool = False

    @property
    def original_id(self) -> str:
        return original_trade_id(self.id)


def original_trade_id(record_id: str) -> str:
    return record_id.split(EXIT_SUFFIX)[0]


def expand_cash_basis(trade: TradeIn, portfolio_size: PortfolioSizeFn) -> List[AccountingRecord]:
    avg_entry = trade.avg_entry or calc_avg_entry(trade)
    sign = -1 if trade.buy_sell == TradeSide.SELL else 1

    legs = [
        (1, trade.exit1_price, trade.exit1_qty, trade.exit1_date),
        (2, trade.exit2_price, trade.exit2_qty, trade.exit2_date),
        (3, trade.exit3_price, trade.exit3_qty, trade.exit3_date),
    ]

    records = []
    for n, price, qty, exit_date in legs:
        if price <= 0 or qty <= 0:
            continue
        booked_on = exit_date or trade.date
        pl = sign * (price - avg_entry) * qty
        size = portfolio_size(booked_on)
        records.append(
            AccountingRecord(
                id=f"{trade.id}{EXIT_SUFFIX}{n}",
                trade=trade,
                date=booked_on,
                pl=pl,
                pf_impact=pl / size * 100 if size > 0 else 0.0,
                cash_basis_exit=True,
            )
        )
    return records


def accounting_records(
    trades: Iterable[TradeIn],
    cash_basis: bool,
    portfolio_size: PortfolioSizeFn,
) -> List[AccountingRecord]:
    if not cash_basis:
        return [
            AccountingRecord(id=t.id, trade=t, date=t.date, pl=t.pl_rs, pf_impact=t.pf_impact)
            for t in trades
        ]

    out: List[AccountingRecord] = []
    for t in trades:
        out.extend(expand_cash_basis(t, portfolio_size))
    return out


def dedupe_expanded(records: Iterable[AccountingRecord]) -> List[AccountingRecord]:
    """Keep the first record per original trade id."""
    seen = set()
    out = []
    for r in records:
        if r.original_id in seen:
            continue
        seen.add(r.original_id)
        out.append(r)
    return out


def calculate_trade_pl(trade: TradeIn, cash_basis: bool, portfolio_size: PortfolioSizeFn) -> float:
    if not cash_basis:
        return trade.pl_rs
    return sum(r.pl for r in expand_cash_basis(trade, portfolio_size))


def total_cash_pf_impact(trade: TradeIn, portfolio_size: PortfolioSizeFn) -> float:
    return sum(r.pf_impact for r in expand_cash_basis(trade, portfolio_size))
