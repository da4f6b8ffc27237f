"""Data models for CoreDrift."""

from coredrift.models.account import ACCOUNT_TYPES, Account
from coredrift.models.setup import Rule, RuleGroup, Setup
from coredrift.models.symbol import DEFAULT_SYMBOLS, Symbol
from coredrift.models.tag import Note, Tag
from coredrift.models.trade import Trade

__all__ = [
    "ACCOUNT_TYPES",
    "DEFAULT_SYMBOLS",
    "Account",
    "Note",
    "Rule",
    "RuleGroup",
    "Setup",
    "Symbol",
    "Tag",
    "Trade",
]
