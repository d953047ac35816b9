"""Custom exceptions for the funding lending bot.

All strategy, exchange and storage exceptions live here
to avoid circular imports between modules.
"""


class LendingBotError(Exception):
    """Base exception for all bot errors."""


class DataUnavailable(LendingBotError):
    """Raised when no trade history exists to estimate a lending rate."""


class TransportError(LendingBotError):
    """Raised when an exchange call fails (network, protocol or rejected request)."""


class PersistenceError(LendingBotError):
    """Raised when a store read or write fails."""


class ConfigError(LendingBotError):
    """Raised when static configuration is missing or invalid. Fatal at startup."""
