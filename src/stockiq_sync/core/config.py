"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from stockiq_sync.core.exceptions import ConfigError


class CacheBackend(StrEnum):
    """Supported cache store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class EdgarConfig(BaseModel):
    """SEC EDGAR (filings registry) access configuration."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = "StockIQ admin@example.com"
    min_interval: float = 0.15
    request_timeout: float = 30.0
    lookback_days: int = 365
    max_filings: int = 100

    @field_validator("user_agent")
    @classmethod
    def user_agent_has_contact(cls, v: str) -> str:
        """SEC requires user-agent with name and email."""
        if "@" not in v:
            raise ValueError(
                "user_agent must contain an email address per SEC policy. "
                "Example: 'YourName your@email.com'"
            )
        return v

    @field_validator("min_interval")
    @classmethod
    def interval_within_sec_policy(cls, v: float) -> float:
        # SEC fair access: at most 10 requests/second
        if v < 0.1:
            raise ValueError("min_interval must be >= 0.1 seconds (SEC policy)")
        return v

    @field_validator("lookback_days", "max_filings")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class YahooConfig(BaseModel):
    """Quote provider (daily bars) configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query2.finance.yahoo.com"
    min_interval: float = 0.5
    request_timeout: float = 15.0

    @field_validator("min_interval")
    @classmethod
    def interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("min_interval must be >= 0")
        return v


class TrialsConfig(BaseModel):
    """ClinicalTrials.gov registry configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://clinicaltrials.gov/api/v2/studies"
    min_interval: float = 0.3
    request_timeout: float = 30.0
    recent_days: int = 90
    max_events: int = 20

    @field_validator("min_interval")
    @classmethod
    def interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("min_interval must be >= 0")
        return v


class RetryConfig(BaseModel):
    """Exponential backoff policy shared by all upstream clients."""

    model_config = ConfigDict(frozen=True)

    retries: int = 5
    base_delay: float = 2.0

    @field_validator("retries")
    @classmethod
    def retries_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retries must be >= 1")
        return v

    @field_validator("base_delay")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("base_delay must be >= 0")
        return v


class CacheConfig(BaseModel):
    """Key/value cache store configuration."""

    model_config = ConfigDict(frozen=True)

    backend: CacheBackend = CacheBackend.SQLITE
    sqlite_path: str = "./data/stockiq_cache.db"

    @model_validator(mode="after")
    def path_required_for_sqlite(self) -> CacheConfig:
        if self.backend == CacheBackend.SQLITE and not self.sqlite_path:
            raise ValueError("sqlite_path is required when backend is 'sqlite'")
        return self


class SyncConfig(BaseModel):
    """Root configuration for the whole sync engine."""

    model_config = ConfigDict(frozen=True)

    edgar: EdgarConfig = EdgarConfig()
    yahoo: YahooConfig = YahooConfig()
    trials: TrialsConfig = TrialsConfig()
    retry: RetryConfig = RetryConfig()
    cache: CacheConfig = CacheConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "STOCKIQ_SYNC_",
) -> SyncConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (STOCKIQ_SYNC_EDGAR__USER_AGENT, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        STOCKIQ_SYNC_RETRY__RETRIES=3  ->  retry.retries = 3
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return SyncConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("STOCKIQ_SYNC_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from STOCKIQ_SYNC_CONFIG not found: {env_path}",
                context={"field": "STOCKIQ_SYNC_CONFIG", "value": env_path},
            )
        return p

    default = Path("stockiq-sync.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # The config-path variable is not a setting
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
