"""Application services for CoreDrift."""

from coredrift.services.journal import TradeJournal

__all__ = ["TradeJournal"]
