"""Exceptions raised by the CoreDrift repository and services."""


class CoreDriftError(Exception):
    """Base class for CoreDrift errors."""


class NotFoundError(CoreDriftError, LookupError):
    """A requested account, trade, symbol, setup, tag or note does not exist."""


class DuplicateError(CoreDriftError, ValueError):
    """An entity with the same unique name already exists."""


class MergeError(CoreDriftError, ValueError):
    """The selected trades cannot be merged."""


class InvalidTradeError(CoreDriftError, ValueError):
    """A trade references a setup or rules that do not fit together."""
