"""Derived trade field calculations for CoreDrift.

Every path that writes a trade (manual entry, edit, CSV import, merge)
runs the raw record through :func:`derive_trade_fields` so the derived
columns are always recomputed from the raw inputs.
"""

import math
import re
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Optional

DEFAULT_PIP_SIZE = 0.0001
DEFAULT_PIP_VALUE_PER_LOT = 10.0

# Risk-to-reward band treated as break-even.
BREAKEVEN_THRESHOLD = 0.15

DERIVED_FIELDS = (
    "riskAmount",
    "duration",
    "session",
    "riskToReward",
    "percentRisk",
    "percentPnL",
    "status",
)

_NUMBER_CLEANUP = re.compile(r"\s")

# Wide enough for the exact digits of any finite float.
_ROUNDING_CONTEXT = Context(prec=400)


def round_half_up(value: float, places: int = 2) -> float:
    """Round a float to ``places`` decimals, halves away from zero.

    The exact binary value of the float is rounded, which matches
    fixed-point string formatting of the stored number. Infinities and
    NaN are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_ROUNDING_CONTEXT)
    return float(rounded)


def _rounded(value: float) -> Optional[float]:
    """Round a computed value, or None if it overflowed."""
    if not math.isfinite(value):
        return None
    return round_half_up(value)


def parse_number(value: Any) -> Optional[float]:
    """Parse a raw numeric field.

    Args:
        value: A number, numeric string, or anything else.

    Returns:
        The value as a finite float, or None if it cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMBER_CLEANUP.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_timestamp(value: Any) -> Optional[datetime]:
    """Normalize a raw timestamp to an aware UTC datetime.

    Accepts a ``datetime``, a ``{"seconds": n}`` wrapper (or any object
    with a ``seconds`` attribute), or an ISO-8601 string. Naive values
    are read as UTC. Anything else, including unparsable strings,
    yields None.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        if not value.strip():
            return None
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    elif value is not None and _seconds_of(value) is not None:
        seconds = parse_number(_seconds_of(value))
        if seconds is None:
            return None
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    try:
        return moment.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def _seconds_of(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("seconds")
    if isinstance(value, timedelta):
        return None
    return getattr(value, "seconds", None)


def _symbol_metadata(raw: Mapping) -> Optional[tuple[float, float]]:
    """Pip size and pip value from the record, with FX defaults."""
    if not raw.get("symbol"):
        return None
    pip_size = parse_number(raw.get("pipSize")) or DEFAULT_PIP_SIZE
    pip_value = parse_number(raw.get("pipValuePerLot")) or DEFAULT_PIP_VALUE_PER_LOT
    return pip_size, pip_value


def calculate_risked_amount(
    entry: float,
    stop: float,
    volume: float,
    pip_size: float,
    pip_value_per_lot: float,
) -> float:
    """Amount lost if the stop is hit, in account currency."""
    pip_count = abs(entry - stop) / pip_size
    return round_half_up(pip_count * pip_value_per_lot * volume)


def trading_session(entry: Optional[datetime]) -> str:
    """Session bucket for an entry time: NY, LN, AS, or "" if unknown.

    NY is checked before LN, so 13:00-15:59 UTC resolves to NY.
    """
    if entry is None:
        return ""
    hour = entry.astimezone(timezone.utc).hour
    if 13 <= hour < 21:
        return "NY"
    if 7 <= hour < 16:
        return "LN"
    return "AS"


def trade_status(risk_to_reward: Optional[float]) -> str:
    """Classify a trade as WIN, LOSS or BE from its R multiple."""
    if risk_to_reward is None:
        return ""
    if risk_to_reward > BREAKEVEN_THRESHOLD:
        return "WIN"
    if risk_to_reward < -BREAKEVEN_THRESHOLD:
        return "LOSS"
    return "BE"


def derive_trade_fields(raw: Mapping, initial_balance: Optional[float]) -> dict:
    """Recalculate the derived fields of a trade record.

    Malformed inputs never raise; a derived field that cannot be
    computed is None (or "" for session and status).

    Args:
        raw: Raw trade record using camelCase field names.
        initial_balance: Initial balance of the owning account.

    Returns:
        A new dict with the raw fields and the seven derived fields.

    Raises:
        TypeError: If ``raw`` is not a mapping.
    """
    if not isinstance(raw, Mapping):
        raise TypeError(f"trade record must be a mapping, got {type(raw).__name__}")

    entry_price = parse_number(raw.get("entryPrice"))
    sl = parse_number(raw.get("sl"))
    volume = parse_number(raw.get("volume"))
    net_pnl = parse_number(raw.get("netPnL"))
    entry_time = normalize_timestamp(raw.get("entryTimestamp"))
    exit_time = normalize_timestamp(raw.get("exitTimestamp"))
    symbol = _symbol_metadata(raw)
    balance = parse_number(initial_balance)

    risk_amount = None
    if entry_price is not None and sl is not None and volume is not None and symbol:
        risk_amount = calculate_risked_amount(entry_price, sl, volume, *symbol)
        if not math.isfinite(risk_amount):
            risk_amount = None

    duration = None
    if entry_time is not None and exit_time is not None:
        minutes = (exit_time - entry_time).total_seconds() / 60
        duration = math.floor(minutes + 0.5)

    risk_to_reward = None
    if net_pnl is not None and risk_amount:
        risk_to_reward = _rounded(net_pnl / risk_amount)

    percent_risk = None
    if risk_amount is not None and balance:
        percent_risk = _rounded(risk_amount / balance * 100)

    percent_pnl = None
    if net_pnl is not None and balance:
        percent_pnl = _rounded(net_pnl / balance * 100)

    return {
        **raw,
        "riskAmount": risk_amount,
        "duration": duration,
        "session": trading_session(entry_time),
        "riskToReward": risk_to_reward,
        "percentRisk": percent_risk,
        "percentPnL": percent_pnl,
        "status": trade_status(risk_to_reward),
    }
