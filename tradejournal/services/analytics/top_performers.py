from typing import Dict, Iterable, Optional

from tradejournal.schemas.trade import TradeIn
from tradejournal.services.accounting import (
    AccountingRecord,
    accounting_records,
    dedupe_expanded,
    expand_cash_basis,
)
from tradejournal.services.trade_calculations import PortfolioSizeFn, calc_weighted_reward_risk

METRICS = ("stockMove", "pfImpact", "rewardRisk", "plRs")


def _metric_value(
    record: AccountingRecord,
    metric: str,
    cash_basis: bool,
    all_time: bool,
    portfolio_size: PortfolioSizeFn,
) -> float:
    trade = record.trade
    if metric == "rewardRisk":
        return calc_weighted_reward_risk(trade)
    if metric == "plRs":
        if cash_basis:
            return sum(r.pl for r in expand_cash_basis(trade, portfolio_size))
        return trade.pl_rs
    if metric == "pfImpact":
        if cash_basis and all_time:
            return sum(r.pf_impact for r in expand_cash_basis(trade, portfolio_size))
        return record.pf_impact or 0
    return trade.stock_move or 0


def _entry(record: AccountingRecord, value: float) -> dict:
    shown_on = record.date or record.trade.date
    return {
        "id": record.original_id,
        "name": record.trade.name,
        "date": shown_on,
        "value": value,
    }


def top_and_bottom(
    trades: Iterable[TradeIn],
    metric: str = "stockMove",
    cash_basis: bool = False,
    all_time: bool = True,
    portfolio_size: Optional[PortfolioSizeFn] = None,
) -> Dict[str, Optional[dict]]:
    """
    Best and worst trade by `metric`, sorted descending.
    In cash basis a trade counts once even if it has several exits.
    """
    if metric not in METRICS:
        raise ValueError("Unknown metric %r, expected one of %s" % (metric, ", ".join(METRICS)))

    size_fn = portfolio_size or (lambda _on: 0.0)

    records = accounting_records(trades, cash_basis, size_fn)
    if cash_basis:
        records = dedupe_expanded(records)
    if not records:
        return {"metric": metric, "top": None, "bottom": None}

    scored = [(r, _metric_value(r, metric, cash_basis, all_time, size_fn)) for r in records]
    scored.sort(key=lambda pair: pair[1], reverse=True)

    return {
        "metric": metric,
        "top": _entry(*scored[0]),
        "bottom": _entry(*scored[-1]),
    }
