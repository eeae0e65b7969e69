"""
Derived trade fields.

A trade is entered as: initial buy + up to two pyramids, and up to three
exit legs. Everything else on the row (averages, quantities, P/L, R
multiple, portfolio impact) is recomputed from those inputs here.

Advisory only:
- Pure functions, no database access
- Fields the user overrode (user_edited_fields) are left untouched
"""

from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic.alias_generators import to_camel

from tradejournal.models.enums import PositionStatus, TradeSide
from tradejournal.schemas.trade import TradeIn

PortfolioSizeFn = Callable[[Optional[date]], float]

Leg = Tuple[float, float, Optional[date]]  # price, qty, date


def _side_sign(trade: TradeIn) -> int:
    return -1 if trade.buy_sell == TradeSide.SELL else 1


def entry_legs(trade: TradeIn) -> List[Leg]:
    legs = [
        (trade.entry, trade.initial_qty, trade.date),
        (trade.pyramid1_price, trade.pyramid1_qty, trade.pyramid1_date),
        (trade.pyramid2_price, trade.pyramid2_qty, trade.pyramid2_date),
    ]
    return [leg for leg in legs if leg[0] > 0 and leg[1] > 0]


def exit_legs(trade: TradeIn) -> List[Leg]:
    legs = [
        (trade.exit1_price, trade.exit1_qty, trade.exit1_date),
        (trade.exit2_price, trade.exit2_qty, trade.exit2_date),
        (trade.exit3_price, trade.exit3_qty, trade.exit3_date),
    ]
    return [leg for leg in legs if leg[0] > 0 and leg[1] > 0]


def _weighted_price(legs: Iterable[Leg]) -> Tuple[float, float]:
    qty = 0.0
    value = 0.0
    for price, leg_qty, _ in legs:
        qty += leg_qty
        value += price * leg_qty
    return (value / qty if qty else 0.0), qty


def calc_avg_entry(trade: TradeIn) -> float:
    avg, qty = _weighted_price(entry_legs(trade))
    return avg if qty else trade.entry


def calc_total_qty(trade: TradeIn) -> float:
    return sum(qty for _, qty, _ in entry_legs(trade))


def calc_exited_qty(trade: TradeIn) -> float:
    return sum(qty for _, qty, _ in exit_legs(trade))


def calc_avg_exit_price(trade: TradeIn) -> float:
    avg, _ = _weighted_price(exit_legs(trade))
    return avg


def calc_position_status(total_qty: float, exited_qty: float) -> PositionStatus:
    if exited_qty <= 0:
        return PositionStatus.OPEN
    if total_qty - exited_qty <= 0:
        return PositionStatus.CLOSED
    return PositionStatus.PARTIAL


def calc_sl_percent(entry: float, sl: float) -> float:
    if entry <= 0 or sl <= 0:
        return 0.0
    return abs(entry - sl) / entry * 100


def calc_stock_move(trade: TradeIn, avg_entry: float) -> float:
    """% move from average entry, exited part at exit prices, open part at CMP."""
    if avg_entry <= 0:
        return 0.0

    total_qty = calc_total_qty(trade)
    exited = calc_exited_qty(trade)
    open_qty = max(total_qty - exited, 0.0)
    avg_exit = calc_avg_exit_price(trade)
    mark = trade.cmp if trade.cmp > 0 else avg_entry

    qty = exited + open_qty
    if qty <= 0:
        ref = mark
    else:
        ref = (avg_exit * exited + mark * open_qty) / qty

    return _side_sign(trade) * (ref - avg_entry) / avg_entry * 100


def calc_realised_pl(trade: TradeIn, avg_entry: float) -> float:
    sign = _side_sign(trade)
    return sum(sign * (price - avg_entry) * qty for price, qty, _ in exit_legs(trade))


def calc_weighted_reward_risk(trade: TradeIn) -> float:
    """
    Quantity-weighted R multiple.

    Each exit leg contributes (exit - entry) / risk; any open remainder is
    marked at CMP. Risk is the distance from the average entry to the
    initial stop.
    """
    avg_entry = trade.avg_entry or calc_avg_entry(trade)
    risk = abs(avg_entry - trade.sl) if trade.sl > 0 else 0.0
    if risk == 0:
        return 0.0

    sign = _side_sign(trade)
    total_qty = calc_total_qty(trade)
    if total_qty <= 0:
        return 0.0

    weighted = 0.0
    exited = 0.0
    for price, qty, _ in exit_legs(trade):
        weighted += sign * (price - avg_entry) / risk * qty
        exited += qty

    open_qty = max(total_qty - exited, 0.0)
    if open_qty > 0 and trade.cmp > 0:
        weighted += sign * (trade.cmp - avg_entry) / risk * open_qty

    return weighted / total_qty


def calc_holding_days(trade: TradeIn, status: PositionStatus, as_of: date) -> int:
    if trade.date is None:
        return 0
    end = as_of
    if status == PositionStatus.CLOSED:
        exit_dates = [d for _, _, d in exit_legs(trade) if d is not None]
        if exit_dates:
            end = max(exit_dates)
    return max((end - trade.date).days, 0)


def calc_open_heat(trade: TradeIn, avg_entry: float, open_qty: float, portfolio_size: float) -> float:
    """% of portfolio lost if the open quantity is stopped out. Never negative."""
    stop = trade.tsl if trade.tsl > 0 else trade.sl
    if open_qty <= 0 or stop <= 0 or portfolio_size <= 0:
        return 0.0
    risk_per_unit = max(_side_sign(trade) * (avg_entry - stop), 0.0)
    return risk_per_unit * open_qty / portfolio_size * 100


def _is_user_edited(trade: TradeIn, field: str) -> bool:
    edited = trade.user_edited_fields or []
    return field in edited or to_camel(field) in edited


def recalculate_trade(
    trade: TradeIn,
    portfolio_size: PortfolioSizeFn,
    as_of: Optional[date] = None,
) -> TradeIn:
    """Return a copy of `trade` with every derived field recomputed."""
    as_of = as_of or date.today()
    size = portfolio_size(trade.date)

    avg_entry = calc_avg_entry(trade)
    total_qty = calc_total_qty(trade)
    exited_qty = calc_exited_qty(trade)
    avg_exit = calc_avg_exit_price(trade)
    open_qty = max(total_qty - exited_qty, 0.0)
    status = calc_position_status(total_qty, exited_qty)
    pl_rs = calc_realised_pl(trade, avg_entry)
    position_size = avg_entry * total_qty

    computed: Dict[str, object] = {
        "avg_entry": avg_entry,
        "position_size": position_size,
        "allocation": position_size / size * 100 if size > 0 else 0.0,
        "sl_percent": calc_sl_percent(trade.entry, trade.sl),
        "open_qty": open_qty,
        "exited_qty": exited_qty,
        "avg_exit_price": avg_exit,
        "stock_move": calc_stock_move(trade, avg_entry),
        "position_status": status,
        "realised_amount": avg_exit * exited_qty,
        "pl_rs": pl_rs,
        "pf_impact": pl_rs / size * 100 if size > 0 else 0.0,
        "holding_days": calc_holding_days(trade, status, as_of),
        "open_heat": calc_open_heat(trade, avg_entry, open_qty, size),
    }

    updates = {k: v for k, v in computed.items() if not _is_user_edited(trade, k)}
    updates["needs_recalculation"] = False

    updated = trade.model_copy(update=updates)
    # reward_risk reads the (possibly overridden) avg_entry from the updated copy
    if not _is_user_edited(trade, "reward_risk"):
        updated = updated.model_copy(update={"reward_risk": calc_weighted_reward_risk(updated)})
    return updated


def apply_cumulative_pf(trades: List[TradeIn]) -> List[TradeIn]:
    """Running sum of pf_impact in trade-date order. Returns trades in input order."""
    ordered = sorted(
        range(len(trades)),
        key=lambda i: (trades[i].date or date.min, trades[i].trade_no),
    )

    out = list(trades)
    running = 0.0
    for i in ordered:
        running += trades[i].pf_impact
        if not _is_user_edited(trades[i], "cumm_pf"):
            out[i] = trades[i].model_copy(update={"cumm_pf": running})
    return out


def recalculate_trades(
    trades: List[TradeIn],
    portfolio_size: PortfolioSizeFn,
    as_of: Optional[date] = None,
) -> List[TradeIn]:
    return apply_cumulative_pf([recalculate_trade(t, portfolio_size, as_of) for t in trades])
