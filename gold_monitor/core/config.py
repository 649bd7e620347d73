"""Pydantic settings loaded from YAML configuration, with env overrides."""

from __future__ import annotations

import datetime
import ipaddress
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator

from gold_monitor.core.exceptions import ConfigError
from gold_monitor.core.types import ThresholdDirection

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

# Environment variables consulted on top of the YAML file.
ENV_CONFIG_PATH = "GOLD_MONITOR_CONFIG"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_PORT = "PORT"


def parse_utc_offset(text: str) -> datetime.tzinfo:
    """Parse ``"UTC"`` or a fixed offset such as ``"+07:00"`` into a tzinfo."""
    cleaned = text.strip()
    if cleaned.upper() in ("", "UTC", "Z"):
        return datetime.UTC
    try:
        parsed = datetime.datetime.strptime(cleaned, "%z")
    except ValueError as exc:
        raise ValueError(f"expected UTC or an offset like +07:00, got {text!r}") from exc
    return parsed.tzinfo or datetime.UTC


class PusherSourceConfig(BaseModel):
    """Pusher channel carrying live gold-rate events."""

    ws_url: str = (
        "wss://ws-ap1.pusher.com/app/52e99bd2c3c42e577e13"
        "?protocol=7&client=js&version=7.0.3&flash=false"
    )
    channel: str = "gold-rate"
    event: str = "gold-rate-event"
    reconnect_cap_secs: float = 15.0


class SourceConfig(BaseModel):
    """Upstream source of the monitored quantity."""

    kind: Literal["http", "pusher"] = "pusher"
    source_tag: str = "treasury"
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    value_field: str = "buying_rate"
    secondary_field: str = "selling_rate"
    timestamp_field: str = "created_at"
    # Offset applied to timestamps that carry none: "UTC" or "+07:00" style.
    naive_timezone: str = "UTC"
    thousands_separator: str = ""
    pusher: PusherSourceConfig = PusherSourceConfig()

    @field_validator("naive_timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        parse_utc_offset(v)
        return v

    @property
    def naive_tzinfo(self) -> datetime.tzinfo:
        return parse_utc_offset(self.naive_timezone)

    @model_validator(mode="after")
    def _check_url(self) -> SourceConfig:
        if self.kind == "http" and not self.url:
            raise ValueError("source.url is required for the http source")
        return self


class RetryConfig(BaseModel):
    """Retry policy for transient fetch failures."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_base_secs: float = Field(default=1.0, ge=0.0)
    backoff_cap_secs: float = Field(default=15.0, ge=0.0)


class ThresholdConfig(BaseModel):
    """Severity band boundaries — a value on a boundary belongs to the higher band."""

    direction: ThresholdDirection = ThresholdDirection.RISING
    warning: Decimal = Decimal("100")
    critical: Decimal = Decimal("200")

    @model_validator(mode="after")
    def _check_order(self) -> ThresholdConfig:
        if self.direction == ThresholdDirection.RISING and self.warning > self.critical:
            raise ValueError("rising thresholds need warning <= critical")
        if self.direction == ThresholdDirection.FALLING and self.warning < self.critical:
            raise ValueError("falling thresholds need warning >= critical")
        return self


class MonitorConfig(BaseModel):
    """Poll/evaluate loop configuration."""

    poll_interval_secs: float = Field(default=5.0, gt=0.0)
    fetch_timeout_secs: float = Field(default=10.0, gt=0.0)
    retention_size: int = Field(default=1441, ge=1)
    stale_after_missed_cycles: int = Field(default=1, ge=1)
    thresholds: ThresholdConfig = ThresholdConfig()
    retry: RetryConfig = RetryConfig()


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = Field(default=10000, ge=0, le=65535)
    shutdown_grace_secs: float = 5.0
    rate_limit_window_secs: float = 60.0
    rate_limit_max_requests: int = 60
    rate_limit_block_requests: int = 120
    block_secs: float = 600.0
    max_failed_attempts: int = 5
    failed_attempt_block_secs: float = 300.0
    max_ws_connections: int = 500
    heartbeat_secs: float = 15.0
    # Peer addresses (or CIDR networks) whose forwarding headers are honoured.
    trusted_proxies: list[str] = Field(default_factory=list)

    @field_validator("trusted_proxies")
    @classmethod
    def _check_proxies(cls, v: list[str]) -> list[str]:
        for entry in v:
            ipaddress.ip_network(entry, strict=False)
        return v


class WebhookConfig(BaseModel):
    """Generic JSON webhook sink."""

    enabled: bool = False
    url: SecretStr = SecretStr("")
    timeout_secs: float = 10.0


class TelegramConfig(BaseModel):
    """Telegram bot sink."""

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""


class AlertsConfig(BaseModel):
    """Alert delivery configuration."""

    webhook: WebhookConfig = WebhookConfig()
    telegram: TelegramConfig = TelegramConfig()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    source: SourceConfig = SourceConfig()
    monitor: MonitorConfig = MonitorConfig()
    server: ServerConfig = ServerConfig()
    alerts: AlertsConfig = AlertsConfig()
    logging: LoggingConfig = LoggingConfig()


def _apply_env_overrides(data: dict[str, Any], env: dict[str, str]) -> dict[str, Any]:
    """Overlay ``LOG_LEVEL`` and ``PORT`` from the environment onto raw YAML data."""
    level = env.get(ENV_LOG_LEVEL, "").strip()
    if level:
        data.setdefault("logging", {})["level"] = level

    port = env.get(ENV_PORT, "").strip()
    if port:
        try:
            data.setdefault("server", {})["port"] = int(port)
        except ValueError as exc:
            raise ConfigError(f"{ENV_PORT} must be an integer, got {port!r}") from exc

    return data


def load_settings(
    path: str | Path | None = None,
    env: dict[str, str] | None = None,
) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Falls back to ``$GOLD_MONITOR_CONFIG``,
            then config/settings.yaml. A missing file means defaults.
        env: Environment mapping for overrides. Defaults to ``os.environ``.

    Returns:
        Parsed Settings instance.

    Raises:
        ConfigError: The file is unreadable, not valid YAML, or fails validation.
    """
    global _settings  # noqa: PLW0603

    environ = dict(os.environ) if env is None else env
    if path:
        config_path = Path(path)
    elif environ.get(ENV_CONFIG_PATH):
        config_path = Path(environ[ENV_CONFIG_PATH])
    else:
        config_path = _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
        if isinstance(raw, dict):
            data = raw
        elif raw is not None:
            raise ConfigError(f"Config {config_path} must be a mapping")

    data = _apply_env_overrides(data, environ)

    try:
        _settings = Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {config_path}: {exc}") from exc
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
