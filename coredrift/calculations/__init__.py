"""Pure trade calculations for CoreDrift."""

from coredrift.calculations.stats import (
    INFINITE,
    NOT_APPLICABLE,
    avg_win_loss_ratio,
    net_cumulative_pnl,
    profit_factor,
    summarize,
    win_percentage,
)
from coredrift.calculations.trade_fields import (
    DERIVED_FIELDS,
    calculate_risked_amount,
    derive_trade_fields,
    normalize_timestamp,
    parse_number,
)

__all__ = [
    "DERIVED_FIELDS",
    "INFINITE",
    "NOT_APPLICABLE",
    "avg_win_loss_ratio",
    "calculate_risked_amount",
    "derive_trade_fields",
    "net_cumulative_pnl",
    "normalize_timestamp",
    "parse_number",
    "profit_factor",
    "summarize",
    "win_percentage",
]
