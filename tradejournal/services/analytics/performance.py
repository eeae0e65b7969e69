"""
Month-by-month capital/performance table and overall trade statistics.
"""

import calendar
from datetime import date
from typing import Iterable, List, Optional

from tradejournal.models.enums import CapitalChangeType, PositionStatus
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.accounting import accounting_records
from tradejournal.services.portfolio import CapitalLedger

PERIODS = ("1W", "1M", "3M", "6M", "YTD", "1Y", "ALL")


def _months_back(today: date, months: int) -> date:
    month_index = today.year * 12 + today.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_start(period: str, today: date) -> Optional[date]:
    if period == "1W":
        return date.fromordinal(today.toordinal() - 7)
    if period == "1M":
        return _months_back(today, 1)
    if period == "3M":
        return _months_back(today, 3)
    if period == "6M":
        return _months_back(today, 6)
    if period == "YTD":
        return date(today.year, 1, 1)
    if period == "1Y":
        return _months_back(today, 12)
    if period == "ALL":
        return None
    raise ValueError("Unknown period %r, expected one of %s" % (period, ", ".join(PERIODS)))


def filter_by_period(trades: Iterable[TradeIn], period: str, today: Optional[date] = None) -> List[TradeIn]:
    today = today or date.today()
    start = period_start(period, today)
    trades = list(trades)
    if start is None:
        return trades
    return [t for t in trades if t.date is not None and start <= t.date <= today]


def monthly_performance(
    trades: Iterable[TradeIn],
    ledger: CapitalLedger,
    year: int,
    cash_basis: bool = False,
) -> List[dict]:
    """
    Each month starts from the previous month's final capital; January
    starts from the year's configured starting capital.
    """
    records = accounting_records(trades, cash_basis, ledger.as_size_fn())

    rows = []
    starting = ledger.starting_capital(year)

    for month in range(1, 13):
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])

        deposits = 0.0
        withdrawals = 0.0
        for change in ledger.changes_between(first, last):
            if change.type == CapitalChangeType.WITHDRAWAL.value:
                withdrawals += change.amount
            else:
                deposits += change.amount

        month_records = [r for r in records if r.date is not None and first <= r.date <= last]
        pl = sum(r.pl for r in month_records)

        final = starting + deposits - withdrawals + pl
        rows.append(
            {
                "month": calendar.month_name[month],
                "year": year,
                "starting_capital": starting,
                "deposits": deposits,
                "withdrawals": withdrawals,
                "pl": pl,
                "pl_percent": (pl / starting * 100) if starting else 0.0,
                "final_capital": final,
                "trades": len({r.original_id for r in month_records}),
            }
        )
        starting = final

    return rows


def trade_statistics(trades: Iterable[TradeIn]) -> dict:
    trades = list(trades)
    closed = [
        t for t in trades if t.position_status in (PositionStatus.CLOSED, PositionStatus.PARTIAL)
    ]
    open_count = sum(1 for t in trades if t.position_status == PositionStatus.OPEN)

    wins = [t for t in closed if t.pl_rs > 0]
    losses = [t for t in closed if t.pl_rs < 0]

    def mean(values: List[float]) -> float:
        return sum(values) / len(values) if values else 0.0

    win_rate = len(wins) / len(closed) * 100 if closed else 0.0
    avg_gain = mean([t.stock_move for t in wins])
    avg_loss = mean([t.stock_move for t in losses])

    return {
        "total_trades": len(trades),
        "closed_trades": len(closed),
        "open_trades": open_count,
        "wins": len(wins),
        "losses": len(losses),
        "win_rate": win_rate,
        "avg_gain": avg_gain,
        "avg_loss": avg_loss,
        "avg_gain_rs": mean([t.pl_rs for t in wins]),
        "avg_loss_rs": mean([t.pl_rs for t in losses]),
        "expectancy": (win_rate / 100) * avg_gain + (1 - win_rate / 100) * avg_loss if closed else 0.0,
        "total_pl": sum(t.pl_rs for t in closed),
        "avg_holding_days": mean([t.holding_days for t in closed]),
        "avg_reward_risk": mean([t.reward_risk for t in closed]),
    }
