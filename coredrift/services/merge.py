"""Merging of partial fills into a single trade."""

from datetime import datetime, timezone
from typing import Optional

from coredrift.calculations.trade_fields import round_half_up
from coredrift.exceptions import MergeError
from coredrift.models import Symbol, Trade


def _entry_date(trade: Trade):
    if trade.entry_timestamp is None:
        return None
    return trade.entry_timestamp.astimezone(timezone.utc).date()


def can_merge(trades: list[Trade]) -> bool:
    """Whether trades can be merged: two or more, same symbol, same entry day (UTC)."""
    if len(trades) < 2:
        return False
    first = trades[0]
    if _entry_date(first) is None:
        return False
    return all(
        trade.symbol == first.symbol and _entry_date(trade) == _entry_date(first)
        for trade in trades
    )


def _weighted(trades: list[Trade], attribute: str, total_volume: float) -> float:
    total = sum((getattr(t, attribute) or 0.0) * (t.volume or 0.0) for t in trades)
    return round_half_up(total / total_volume, 5)


def _total(trades: list[Trade], attribute: str) -> float:
    return round_half_up(sum(getattr(t, attribute) or 0.0 for t in trades))


def merge_trades(trades: list[Trade], symbol: Optional[Symbol] = None) -> dict:
    """Combine trades into one raw trade record.

    Prices and stop loss are volume-weighted; volume, commission, swap
    and P&L are summed. Direction, symbol, account and setup come from
    the first trade.

    Args:
        trades: Trades to merge, in selection order.
        symbol: Catalog metadata for the symbol, if known.

    Returns:
        Raw trade record (camelCase) without derived fields.

    Raises:
        MergeError: If the trades cannot be merged.
    """
    if not can_merge(trades):
        raise MergeError("Only two or more trades on the same symbol and day can be merged")

    total_volume = sum(t.volume or 0.0 for t in trades)
    if total_volume <= 0:
        raise MergeError("Cannot merge trades with no volume")

    first = trades[0]
    exits: list[datetime] = [t.exit_timestamp for t in trades if t.exit_timestamp]
    tags = list(dict.fromkeys(tag for t in trades for tag in t.tags))

    merged = {
        "entryTimestamp": min(t.entry_timestamp for t in trades),
        "exitTimestamp": max(exits) if exits else None,
        "direction": first.direction,
        "symbol": first.symbol,
        "volume": round_half_up(total_volume),
        "entryPrice": _weighted(trades, "entry_price", total_volume),
        "exitPrice": _weighted(trades, "exit_price", total_volume),
        "sl": _weighted(trades, "sl", total_volume),
        "commission": _total(trades, "commission"),
        "swap": _total(trades, "swap"),
        "netPnL": _total(trades, "net_pnl"),
        "accountId": first.account_id,
        "userId": first.user_id,
        "setups": first.setups,
        "selectedRules": list(first.selected_rules),
        "tags": tags,
    }
    if symbol is not None:
        merged["pipSize"] = symbol.pip_size
        merged["pipValuePerLot"] = symbol.pip_value_per_lot
        merged["contractSize"] = symbol.contract_size
    else:
        merged["pipSize"] = first.pip_size
        merged["pipValuePerLot"] = first.pip_value_per_lot
        merged["contractSize"] = first.contract_size
    return merged
