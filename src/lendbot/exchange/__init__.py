"""Exchange client layer -- lending capability interface and implementations."""

from lendbot.config import ExchangeConfig
from lendbot.exceptions import ConfigError
from lendbot.exchange.bitfinex_client import BitfinexClient
from lendbot.exchange.client import LendingClient
from lendbot.exchange.types import round_to_step, to_decimal

# Config "name" -> client implementation
CLIENTS: dict[str, type[LendingClient]] = {
    "bitfinex": BitfinexClient,
}


def create_client(config: ExchangeConfig) -> LendingClient:
    """Instantiate the registered client for an exchange config."""
    client_cls = CLIENTS.get(config.name)
    if client_cls is None:
        raise ConfigError(f"no lending client registered for exchange {config.name!r}")
    return client_cls(config)


__all__ = [
    "BitfinexClient",
    "CLIENTS",
    "LendingClient",
    "create_client",
    "round_to_step",
    "to_decimal",
]
