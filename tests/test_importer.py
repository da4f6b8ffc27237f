"""Tests for CSV import.

**Feature: coredrift-journal**
"""

import pytest

from coredrift.services.importer import (
    detect_delimiter,
    is_complete,
    normalize_direction,
    normalize_symbol,
    parse_flat_csv,
    parse_positions_report,
    parse_report_time,
    parse_trades_csv,
)

MT5_REPORT = """Trade History Report
Name:,Jane Trader
Account:,5012345 (USD)
Positions
Time,Position,Symbol,Type,Volume,Price,S / L,T / P,Time,Price,Commission,Swap,Profit
2024.01.15 09:30:00,1001,XAUUSD.m,buy,0.5,2050.10,2045.10,2060.00,2024.01.15 10:15:00,2055.30,-3.50,0,260.00
2024.01.15 14:00:00,1002,EURUSDpro,sell,1,1.0950,1.0990,,2024.01.15 15:00:00,1.0930,-7,-1.2,"1,200.00"
2024.01.16 14:00:00,1003,GBPUSD,sell,1,1.2700,,,,,0,0,
Orders
Open Time,Order,Symbol,Type,Volume,Price
2024.01.15 09:30:00,1001,XAUUSD.m,buy,0.5,2050.10
"""

FLAT_CSV = """entryTimestamp,exitTimestamp,direction,symbol,volume,entryPrice,exitPrice,sl,commission,swap,netPnL,setups,tags
2024-05-02T08:00:00Z,2024-05-02T09:00:00Z,buy,EURUSD,1,1.1,1.101,1.095,-7,0,100,,london; a+
2024-05-03T08:00:00Z,2024-05-03T09:00:00Z,SELL,EURUSD,1,1.1,1.099,,,,abc,,
"""


class TestHelpers:
    """Cell-level normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("XAUUSD.m", "XAUUSD"),
            ("xauusdpro", "XAUUSD"),
            ("EURUSD.raw", "EURUSD"),
            (" GBPUSD ", "GBPUSD"),
        ],
    )
    def test_normalize_symbol(self, raw: str, expected: str):
        assert normalize_symbol(raw) == expected

    @pytest.mark.parametrize("raw,expected", [("buy", "Buy"), ("SELL", "Sell"), ("", "")])
    def test_normalize_direction(self, raw: str, expected: str):
        assert normalize_direction(raw) == expected

    def test_parse_report_time(self):
        assert parse_report_time("2024.01.15 09:30:00") == "2024-01-15T09:30:00"
        assert parse_report_time("2024.01.15") == "2024-01-15"
        assert parse_report_time("  ") is None

    def test_detect_delimiter(self):
        assert detect_delimiter(["a\tb", "c"]) == "\t"
        assert detect_delimiter(["a,b"]) == ","

    def test_is_complete(self):
        row = {
            "entryTimestamp": "2024-01-15T09:30:00",
            "exitTimestamp": "2024-01-15T10:00:00",
            "symbol": "EURUSD",
            "direction": "Buy",
            "entryPrice": 1.1,
            "exitPrice": 1.2,
            "netPnL": 0,
        }
        assert is_complete(row)
        assert not is_complete({**row, "netPnL": None})
        assert not is_complete({**row, "exitTimestamp": "soon"})
        assert not is_complete({**row, "symbol": ""})


class TestPositionsReport:
    """MetaTrader 5 history reports."""

    def test_parses_positions_section_only(self):
        rows = parse_positions_report(MT5_REPORT)
        assert len(rows) == 3

    def test_row_fields(self):
        gold = parse_positions_report(MT5_REPORT)[0]
        assert gold == {
            "entryTimestamp": "2024-01-15T09:30:00",
            "exitTimestamp": "2024-01-15T10:15:00",
            "direction": "Buy",
            "symbol": "XAUUSD",
            "entryPrice": 2050.10,
            "exitPrice": 2055.30,
            "netPnL": 260.0,
            "setups": None,
            "sl": 2045.10,
            "commission": -3.5,
            "swap": 0.0,
            "volume": 0.5,
        }

    def test_thousands_separator_in_profit(self):
        fx = parse_positions_report(MT5_REPORT)[1]
        assert fx["netPnL"] == 1200.0
        assert fx["symbol"] == "EURUSD"
        assert fx["direction"] == "Sell"

    def test_incomplete_rows_dropped(self):
        rows = parse_trades_csv(MT5_REPORT)
        assert [r["symbol"] for r in rows] == ["XAUUSD", "EURUSD"]

    def test_tab_delimited(self):
        report = MT5_REPORT.replace(",", "\t").replace('"1\t200.00"', "1200.00")
        rows = parse_trades_csv(report)
        assert len(rows) == 2
        assert rows[1]["netPnL"] == 1200.0

    def test_no_positions_rows(self):
        assert parse_positions_report("Positions\nTime,Symbol\n\nOrders\n") == []


class TestFlatCsv:
    """CSV files with trade field headers."""

    def test_fields(self):
        first = parse_flat_csv(FLAT_CSV)[0]
        assert first["direction"] == "Buy"
        assert first["volume"] == 1.0
        assert first["commission"] == -7.0
        assert first["setups"] is None
        assert first["tags"] == ["london", "a+"]

    def test_unparsable_pnl_dropped(self):
        rows = parse_trades_csv(FLAT_CSV)
        assert len(rows) == 1
        assert rows[0]["netPnL"] == 100.0

    def test_missing_columns(self):
        rows = parse_flat_csv("symbol,netPnL\nEURUSD,5\n")
        assert rows[0]["symbol"] == "EURUSD"
        assert rows[0]["entryPrice"] is None
        assert rows[0]["tags"] == []
        assert parse_trades_csv("symbol,netPnL\nEURUSD,5\n") == []

    def test_empty_file(self):
        assert parse_trades_csv("") == []
