import calendar
from typing import Dict, Iterable, Optional

from tradejournal.schemas.trade import TradeIn
from tradejournal.services.accounting import expand_cash_basis
from tradejournal.services.analytics.drawdown import closed_trades_for_year, max_drawdown_points
from tradejournal.services.trade_calculations import PortfolioSizeFn

MONTHS = list(calendar.month_name)[1:]


def monthly_tax_map(taxes_by_month: Optional[Dict[str, float]]) -> Dict[str, float]:
    """Every month present, missing ones set to 0."""
    taxes_by_month = taxes_by_month or {}
    out = {}
    for month in MONTHS:
        try:
            out[month] = float(taxes_by_month.get(month) or 0)
        except (TypeError, ValueError):
            out[month] = 0.0
    return out


def tax_summary(
    trades: Iterable[TradeIn],
    year: int,
    taxes_by_month: Optional[Dict[str, float]] = None,
    cash_basis: bool = False,
    portfolio_size: Optional[PortfolioSizeFn] = None,
) -> dict:
    trades = list(trades)
    size_fn = portfolio_size or (lambda _on: 0.0)

    in_year = [t for t in trades if t.date is not None and t.date.year == year]
    if cash_basis:
        gross_pl = sum(r.pl for t in in_year for r in expand_cash_basis(t, size_fn))
    else:
        gross_pl = sum(t.pl_rs for t in in_year)

    closed = closed_trades_for_year(trades, year, cash_basis)
    cumm_pfs = [t.cumm_pf for t in closed]

    taxes = monthly_tax_map(taxes_by_month)
    total_taxes = sum(taxes.values())

    return {
        "year": year,
        "accounting_method": "cash" if cash_basis else "accrual",
        "gross_pl": gross_pl,
        "total_taxes": total_taxes,
        "net_pl": gross_pl - total_taxes,
        "tax_percent_of_gross": (total_taxes / gross_pl * 100) if gross_pl else 0.0,
        "max_cumm_pf": max(cumm_pfs) if cumm_pfs else 0.0,
        "min_cumm_pf": min(cumm_pfs) if cumm_pfs else 0.0,
        "max_drawdown": max_drawdown_points(cumm_pfs),
        "taxes_by_month": taxes,
    }
