from datetime import date
from typing import Dict, Iterable, List, Optional

from tradejournal.models.enums import PositionStatus
from tradejournal.schemas.trade import TradeIn
from tradejournal.services.accounting import original_trade_id

CLOSED_STATUSES = (PositionStatus.CLOSED, PositionStatus.PARTIAL)

MILD_DD_POINTS = 5
SEVERE_DD_POINTS = 15
MOVE_NOTE_THRESHOLD = 0.5


def closed_trades_for_year(trades: Iterable[TradeIn], year: int, cash_basis: bool) -> List[TradeIn]:
    """Closed/Partial trades entered in `year`, oldest first."""
    in_year = [t for t in trades if t.date is not None and t.date.year == year]

    if cash_basis:
        seen = set()
        unique = []
        for t in in_year:
            key = original_trade_id(t.id)
            if key in seen:
                continue
            seen.add(key)
            unique.append(t)
        in_year = unique

    closed = [t for t in in_year if t.position_status in CLOSED_STATUSES]
    return sorted(closed, key=lambda t: t.date)


def display_date(trade: TradeIn, cash_basis: bool) -> Optional[date]:
    if cash_basis:
        return trade.exit1_date or trade.exit2_date or trade.exit3_date or trade.date
    return trade.date


def _system_commentary(
    index: int,
    is_new_peak: bool,
    drawdown: float,
    previous_pf: float,
    running_max: float,
    year: int,
) -> tuple:
    if index == 0:
        return "DD started", "start"
    if is_new_peak:
        return "Touching new peak equity highs", "peak"
    if drawdown == 0 and previous_pf < running_max:
        recovered = abs(running_max - previous_pf)
        return "Recovery of %.2f from dd low of %.2f" % (recovered, running_max), "recovery"
    if 0 < drawdown < MILD_DD_POINTS:
        return "DD going on", "mild"
    if MILD_DD_POINTS <= drawdown < SEVERE_DD_POINTS:
        return "DD in full force (MODERATE DD)", "moderate"
    if drawdown >= SEVERE_DD_POINTS:
        return "DD in full force (SEVERE DD - RECORD DD IN %d)" % year, "severe"
    return "", "neutral"


def drawdown_breakdown(
    trades: Iterable[TradeIn],
    year: int,
    cash_basis: bool = False,
    custom_commentary: Optional[Dict[str, str]] = None,
) -> List[dict]:
    """
    One row per closed trade of the year with the cumulative PF curve,
    points below the running peak and a short commentary.

    Drawdown is measured in percentage points below the peak, and only
    once the peak is above zero.
    """
    custom_commentary = custom_commentary or {}
    closed = closed_trades_for_year(trades, year, cash_basis)
    if not closed:
        return []

    running_max = closed[0].cumm_pf or 0
    previous_pf = 0.0
    rows = []

    for index, trade in enumerate(closed):
        current_pf = trade.cumm_pf or 0

        is_new_peak = current_pf > running_max
        if is_new_peak:
            running_max = current_pf

        drawdown = running_max - current_pf if running_max > 0 else 0

        commentary, commentary_type = _system_commentary(
            index, is_new_peak, drawdown, previous_pf, running_max, year
        )

        if index > 0:
            move = current_pf - previous_pf
            if abs(move) > MOVE_NOTE_THRESHOLD:
                direction = "up" if move > 0 else "down"
                commentary += " • Portfolio %s %.2f%%" % (direction, abs(move))

        shown_on = display_date(trade, cash_basis)
        trade_key = "%s-%s-%d" % (shown_on.isoformat() if shown_on else "", trade.name, index)

        system_commentary = commentary or "No commentary"
        custom = custom_commentary.get(trade_key)

        rows.append(
            {
                "date": shown_on,
                "symbol": trade.name or "Unknown",
                "stock_pf_impact": trade.pf_impact or 0,
                "cumm_pf_impact": current_pf,
                "drawdown_from_peak": drawdown,
                "is_new_peak": is_new_peak,
                "commentary": custom or system_commentary,
                "system_commentary": system_commentary,
                "commentary_type": "custom" if custom else commentary_type,
                "trade_key": trade_key,
                "accounting_method": "Cash" if cash_basis else "Accrual",
            }
        )

        previous_pf = current_pf

    return rows


def max_drawdown_points(cumm_pfs: List[float]) -> float:
    """Largest fall, in points, from a positive running peak."""
    if not cumm_pfs:
        return 0.0

    running_max = cumm_pfs[0]
    worst = 0.0
    for pf in cumm_pfs:
        if pf > running_max:
            running_max = pf
        if running_max > 0:
            worst = max(worst, running_max - pf)
    return worst
