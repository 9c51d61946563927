"""Exceptions raised at the engine boundary for caller misuse."""


class ArenaError(Exception):
    """Base class for all trader-arena errors."""


class SessionStateError(ArenaError):
    """An operation is not legal in the engine's current phase."""


class UnknownPlayerError(ArenaError, KeyError):
    """A trade or query referenced a player id that does not exist."""


class UnknownStockError(ArenaError, KeyError):
    """A trade or query referenced an instrument id that does not exist."""
