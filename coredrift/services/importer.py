"""CSV import for CoreDrift.

Turns broker exports into raw trade records. Two layouts are accepted:

- MetaTrader 5 account history reports, where trades live in a
  ``Positions`` section whose header row starts with ``Time``.
- Flat CSV files whose header row uses trade field names
  (``entryTimestamp``, ``symbol``, ``netPnL``, ...).

Rows missing the fields a trade needs are dropped here, before they
ever reach the calculator.
"""

import csv
import io
import logging
from typing import Optional

from coredrift.calculations.trade_fields import normalize_timestamp, parse_number

logger = logging.getLogger(__name__)

FLAT_CSV_FIELDS = [
    "entryTimestamp",
    "exitTimestamp",
    "direction",
    "symbol",
    "volume",
    "entryPrice",
    "exitPrice",
    "sl",
    "commission",
    "swap",
    "netPnL",
    "setups",
    "tags",
]

_NUMERIC_FIELDS = {"volume", "entryPrice", "exitPrice", "sl", "commission", "swap", "netPnL"}

# Broker symbols carry suffixes such as "XAUUSD.m" or "EURUSDpro"
_SYMBOL_PREFIXES = ("XAUUSD", "EURUSD")

_SECTION_ENDS = ("Orders", "Deals")


def detect_delimiter(lines: list[str]) -> str:
    """Tab if any line contains one, comma otherwise."""
    return "\t" if any("\t" in line for line in lines) else ","


def normalize_symbol(symbol: str) -> str:
    """Strip broker suffixes from known symbols."""
    symbol = symbol.strip()
    for prefix in _SYMBOL_PREFIXES:
        if symbol.upper().startswith(prefix):
            return prefix
    return symbol


def normalize_direction(direction: str) -> str:
    """Capitalize a direction such as ``buy`` into ``Buy``."""
    direction = direction.strip()
    return direction[:1].upper() + direction[1:].lower()


def parse_report_time(value: str) -> Optional[str]:
    """Convert ``2024.01.15 09:30:00`` into an ISO-8601 string."""
    value = value.strip()
    if not value:
        return None
    date_part, _, time_part = value.partition(" ")
    iso = date_part.replace(".", "-")
    if time_part:
        iso += "T" + time_part.strip()
    return iso


def is_complete(row: dict) -> bool:
    """Whether a raw row has everything needed to journal a trade."""
    return (
        normalize_timestamp(row.get("entryTimestamp")) is not None
        and normalize_timestamp(row.get("exitTimestamp")) is not None
        and bool(row.get("symbol"))
        and bool(row.get("direction"))
        and parse_number(row.get("entryPrice")) is not None
        and parse_number(row.get("exitPrice")) is not None
        and parse_number(row.get("netPnL")) is not None
    )


def _split(line: str, delimiter: str) -> list[str]:
    return next(csv.reader([line], delimiter=delimiter))


def _cell(row: list[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def parse_positions_report(text: str) -> list[dict]:
    """Extract raw trades from the Positions section of an MT5 report.

    Args:
        text: Report contents.

    Returns:
        Raw trade records, including incomplete ones.
    """
    lines = [line.strip() for line in text.splitlines()]
    delimiter = detect_delimiter(lines)

    header: list[str] = []
    rows: list[list[str]] = []
    in_positions = False
    for line in lines:
        if line.startswith("Positions"):
            in_positions = True
            header = []
            continue
        if not in_positions:
            continue
        if not header:
            if line.startswith("Time"):
                header = [h.strip().lower() for h in _split(line, delimiter)]
            continue
        if not line or line.startswith(_SECTION_ENDS):
            break
        rows.append(_split(line, delimiter))

    def indices(name: str) -> list[int]:
        return [i for i, h in enumerate(header) if h == name]

    def index(name: str) -> Optional[int]:
        found = indices(name)
        return found[0] if found else None

    times = indices("time") + [None, None]
    prices = indices("price") + [None, None]
    columns = {
        "sl": index("s / l"),
        "commission": index("commission"),
        "swap": index("swap"),
        "volume": index("volume"),
    }

    trades = []
    for row in rows:
        trade = {
            "entryTimestamp": parse_report_time(_cell(row, times[0])),
            "exitTimestamp": parse_report_time(_cell(row, times[1])),
            "direction": normalize_direction(_cell(row, index("type"))),
            "symbol": normalize_symbol(_cell(row, index("symbol"))),
            "entryPrice": parse_number(_cell(row, prices[0])),
            "exitPrice": parse_number(_cell(row, prices[1])),
            "netPnL": parse_number(_cell(row, index("profit")).replace(",", "")),
            "setups": None,
        }
        for field, column in columns.items():
            trade[field] = parse_number(_cell(row, column))
        trades.append(trade)
    return trades


def parse_flat_csv(text: str) -> list[dict]:
    """Read raw trades from a CSV file with trade field names as headers."""
    lines = text.splitlines()
    reader = csv.DictReader(io.StringIO(text), delimiter=detect_delimiter(lines))
    trades = []
    for row in reader:
        trade = {}
        for field in FLAT_CSV_FIELDS:
            value = (row.get(field) or "").strip()
            if field in _NUMERIC_FIELDS:
                trade[field] = parse_number(value)
            elif field == "tags":
                trade[field] = [t.strip() for t in value.split(";") if t.strip()]
            elif field == "direction":
                trade[field] = normalize_direction(value)
            else:
                trade[field] = value or None
        trades.append(trade)
    return trades


def parse_trades_csv(text: str) -> list[dict]:
    """Parse a CSV export into complete raw trade records.

    Args:
        text: File contents, either an MT5 report or a flat CSV.

    Returns:
        Raw trade records ready for :func:`derive_trade_fields`.
    """
    if any(line.strip().startswith("Positions") for line in text.splitlines()):
        rows = parse_positions_report(text)
    else:
        rows = parse_flat_csv(text)

    complete = [row for row in rows if is_complete(row)]
    skipped = len(rows) - len(complete)
    if skipped:
        logger.info("Skipped %d incomplete rows out of %d", skipped, len(rows))
    return complete
