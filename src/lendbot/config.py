"""Configuration system using pydantic-settings with environment and TOML loading."""

import os
import tomllib
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
    TomlConfigSettingsSource,
)

from lendbot.exceptions import ConfigError

DEFAULT_CONFIG_FILE = "config.toml"


def funding_symbol(symbol: str) -> str:
    """Return the funding instrument key for a currency (e.g. USD -> fUSD)."""
    return f"f{symbol}"


class LendingStrategyConfig(BaseModel):
    """Per-pair lending parameters. Immutable for the life of a strategy.

    All rates are daily decimal rates (0.0003 = 0.03%/day).
    """

    model_config = ConfigDict(frozen=True)

    name: Literal["lending"] = "lending"
    symbol: str
    lending_size: Decimal = Decimal("200")  # unit offer amount
    min_apy: Decimal = Decimal("0.0003")
    max_apy: Decimal = Decimal("0.00082")
    reserved_amount_tier1: Decimal = Decimal("1000")
    reserved_amount_tier2: Decimal = Decimal("1500")

    @field_validator(
        "lending_size",
        "min_apy",
        "max_apy",
        "reserved_amount_tier1",
        "reserved_amount_tier2",
        mode="before",
    )
    @classmethod
    def _float_via_str(cls, value: object) -> object:
        # TOML numbers arrive as float; Decimal(float) would carry binary noise
        if isinstance(value, float):
            return str(value)
        return value

    @field_validator("symbol")
    @classmethod
    def _symbol_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("symbol must not be empty")
        return value

    @model_validator(mode="after")
    def _check_thresholds(self) -> "LendingStrategyConfig":
        if self.lending_size <= 0:
            raise ValueError("lending_size must be positive")
        if self.min_apy < 0 or self.min_apy > self.max_apy:
            raise ValueError("expected 0 <= min_apy <= max_apy")
        if self.reserved_amount_tier1 < 0 or self.reserved_amount_tier2 < 0:
            raise ValueError("reserved amounts must not be negative")
        return self


class ExchangeConfig(BaseModel):
    """One exchange account and the lending strategies it runs."""

    name: str = "bitfinex"  # key into lendbot.exchange.CLIENTS
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    strategies: list[LendingStrategyConfig] = []


class DatabaseSettings(BaseSettings):
    """SQLite store location and connection pool size."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/lending.db"
    pool_size: int = 4


class SchedulerSettings(BaseSettings):
    """Tick cadence for every configured pair."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    tick_interval_seconds: float = 60.0


class DashboardSettings(BaseSettings):
    """Status API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "127.0.0.1"
    port: int = 8080
    enabled: bool = False


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        toml_file=DEFAULT_CONFIG_FILE,
    )

    log_level: str = "INFO"
    database: DatabaseSettings = DatabaseSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    dashboard: DashboardSettings = DashboardSettings()
    exchanges: list[ExchangeConfig] = []

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Precedence: explicit kwargs, TOML file, environment, .env, secrets
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _unique_pairs(self) -> "AppSettings":
        names = [exchange.name for exchange in self.exchanges]
        if len(names) != len(set(names)):
            raise ValueError("exchange names must be unique")

        seen: set[tuple[str, str]] = set()
        for exchange in self.exchanges:
            for strategy in exchange.strategies:
                key = (exchange.name, strategy.symbol)
                if key in seen:
                    raise ValueError(f"duplicate strategy for {key[0]}/{key[1]}")
                seen.add(key)
        return self

    def pairs(self) -> list[tuple[ExchangeConfig, LendingStrategyConfig]]:
        """Return every configured (exchange, strategy) pair."""
        return [
            (exchange, strategy)
            for exchange in self.exchanges
            for strategy in exchange.strategies
        ]


def _settings_class(config_path: str) -> type[AppSettings]:
    """AppSettings reading its TOML source from ``config_path``."""

    class FileAppSettings(AppSettings):
        model_config = SettingsConfigDict(toml_file=config_path)

    return FileAppSettings


def load_settings(config_path: str | None = None) -> AppSettings:
    """Build AppSettings from a TOML file plus the environment.

    File values take precedence over environment variables. Without
    ``config_path``, ``config.toml`` in the working directory is read when
    present.

    Raises:
        ConfigError: If the file is missing, unreadable or the settings are invalid.
    """
    settings_cls: type[AppSettings] = AppSettings
    if config_path is not None:
        if not os.path.isfile(config_path):
            raise ConfigError(f"cannot read config file {config_path}: not a file")
        settings_cls = _settings_class(config_path)

    try:
        return settings_cls()
    except (OSError, tomllib.TOMLDecodeError, SettingsError) as e:
        raise ConfigError(f"cannot read config file {config_path or DEFAULT_CONFIG_FILE}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
