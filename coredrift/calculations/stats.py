"""Aggregate performance statistics over derived trades.

All reducers accept either trade mappings (camelCase documents) or
``Trade`` models, and never mutate their input.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from coredrift.calculations.trade_fields import parse_number, round_half_up

INFINITE = "∞"
NOT_APPLICABLE = "N/A"


def _pnl(trade: Any) -> Optional[float]:
    """P&L of a trade, falling back to the legacy ``netPL`` field."""
    if isinstance(trade, Mapping):
        value = trade.get("netPnL")
        if value is None:
            value = trade.get("netPL")
    else:
        value = getattr(trade, "net_pnl", None)
    return parse_number(value)


def _format_ratio(ratio: float) -> str:
    if math.isnan(ratio):
        return NOT_APPLICABLE
    if math.isinf(ratio):
        return INFINITE
    return f"{round_half_up(ratio):.2f}"


def _status(trade: Any) -> str:
    if isinstance(trade, Mapping):
        status = trade.get("status")
    else:
        status = getattr(trade, "status", None)
    return status.upper() if isinstance(status, str) else ""


def _wins(trades: list) -> list[float]:
    return [
        pnl for pnl in (_pnl(t) for t in trades if _status(t) == "WIN")
        if pnl is not None and pnl > 0
    ]


def _losses(trades: list) -> list[float]:
    return [
        pnl for pnl in (_pnl(t) for t in trades if _status(t) == "LOSS")
        if pnl is not None and pnl < 0
    ]


def net_cumulative_pnl(trades: Iterable) -> float:
    """Sum of P&L across all trades; unparsable values count as zero."""
    return sum((_pnl(t) or 0.0 for t in trades), 0.0)


def profit_factor(trades: Iterable) -> str:
    """Gross profit of winners over gross loss of losers.

    Returns:
        The ratio formatted to two decimals, "∞" when there is profit
        but no loss, or "N/A" when there is neither.
    """
    trades = list(trades)
    gross_profit = sum(_wins(trades))
    gross_loss = abs(sum(_losses(trades)))
    if gross_loss == 0:
        return INFINITE if gross_profit > 0 else NOT_APPLICABLE
    return _format_ratio(gross_profit / gross_loss)


def win_percentage(trades: Iterable) -> str:
    """Share of winners among decisive (WIN or LOSS) trades.

    Break-even trades are ignored. Returns "0%" when no trade is
    decisive.
    """
    statuses = [_status(t) for t in trades]
    winning = statuses.count("WIN")
    losing = statuses.count("LOSS")
    considered = winning + losing
    if considered == 0:
        return "0%"
    return f"{round_half_up(winning / considered * 100):.2f}%"


def avg_win_loss_ratio(trades: Iterable) -> str:
    """Average winning P&L over the absolute average losing P&L."""
    trades = list(trades)
    wins = _wins(trades)
    losses = _losses(trades)
    if not wins or not losses:
        return NOT_APPLICABLE
    avg_win = sum(wins) / len(wins)
    avg_loss = abs(sum(losses) / len(losses))
    if avg_loss == 0:
        return INFINITE if avg_win > 0 else NOT_APPLICABLE
    return _format_ratio(avg_win / avg_loss)


def summarize(trades: Iterable) -> dict:
    """Compute the summary card values for a list of trades.

    Args:
        trades: Derived trades (mappings or Trade models).

    Returns:
        Dictionary with the aggregate stats and status counts.
    """
    trades = list(trades)
    statuses = [_status(t) for t in trades]
    return {
        "net_pnl": net_cumulative_pnl(trades),
        "profit_factor": profit_factor(trades),
        "win_percentage": win_percentage(trades),
        "avg_win_loss_ratio": avg_win_loss_ratio(trades),
        "total_trades": len(trades),
        "winning_trades": statuses.count("WIN"),
        "losing_trades": statuses.count("LOSS"),
        "breakeven_trades": statuses.count("BE"),
    }
