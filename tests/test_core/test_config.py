"""Tests for gold_monitor/core/config.py — YAML loading, defaults, env overrides, validation."""

from __future__ import annotations

import datetime
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from gold_monitor.core.config import (
    LoggingConfig,
    MonitorConfig,
    ServerConfig,
    Settings,
    SourceConfig,
    ThresholdConfig,
    get_settings,
    load_settings,
    parse_utc_offset,
    reset_settings,
)
from gold_monitor.core.exceptions import ConfigError
from gold_monitor.core.types import ThresholdDirection


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    """Reset the global settings cache before each test."""
    reset_settings()


def _write(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(data))
    return path


class TestDefaults:
    """Settings should have sensible defaults when no YAML is provided."""

    def test_default_monitor_config(self) -> None:
        cfg = MonitorConfig()
        assert cfg.poll_interval_secs == 5.0
        assert cfg.retention_size == 1441
        assert cfg.stale_after_missed_cycles == 1
        assert cfg.retry.max_attempts == 3
        assert cfg.thresholds.direction == ThresholdDirection.RISING

    def test_default_server_config(self) -> None:
        cfg = ServerConfig()
        assert cfg.port == 10000
        assert cfg.rate_limit_max_requests == 60
        assert cfg.rate_limit_block_requests == 120
        assert cfg.max_ws_connections == 500
        assert cfg.heartbeat_secs == 15.0
        assert cfg.trusted_proxies == []

    def test_default_source_is_pusher(self) -> None:
        cfg = SourceConfig()
        assert cfg.kind == "pusher"
        assert cfg.value_field == "buying_rate"
        assert cfg.secondary_field == "selling_rate"
        assert cfg.naive_tzinfo is datetime.UTC
        assert cfg.pusher.channel == "gold-rate"
        assert cfg.pusher.event == "gold-rate-event"

    def test_default_logging_config(self) -> None:
        cfg = LoggingConfig()
        assert cfg.level == "INFO"
        assert cfg.format == "json"

    def test_default_alerts_disabled(self) -> None:
        s = Settings()
        assert s.alerts.webhook.enabled is False
        assert s.alerts.telegram.enabled is False
        assert s.alerts.telegram.bot_token.get_secret_value() == ""


class TestYamlLoading:
    """Settings should load correctly from YAML files."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {
            "monitor": {
                "poll_interval_secs": 2,
                "thresholds": {"warning": 1500, "critical": 1800},
                "retry": {"max_attempts": 5},
            },
            "server": {"port": 8081},
            "logging": {"level": "DEBUG", "format": "console"},
        })
        s = load_settings(path, env={})
        assert s.monitor.poll_interval_secs == 2.0
        assert s.monitor.thresholds.warning == Decimal("1500")
        assert s.monitor.thresholds.critical == Decimal("1800")
        assert s.monitor.retry.max_attempts == 5
        assert s.server.port == 8081
        assert s.logging.format == "console"

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        s = load_settings(tmp_path / "nope.yaml", env={})
        assert s.server.port == 10000

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("")
        s = load_settings(path, env={})
        assert s.monitor.retention_size == 1441

    def test_config_path_from_env(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"server": {"port": 9000}})
        s = load_settings(env={"GOLD_MONITOR_CONFIG": str(path)})
        assert s.server.port == 9000

    def test_secrets_are_masked(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {
            "alerts": {"telegram": {"enabled": True, "bot_token": "123:abc", "chat_id": "42"}},
        })
        s = load_settings(path, env={})
        assert s.alerts.telegram.bot_token.get_secret_value() == "123:abc"
        assert "123:abc" not in repr(s.alerts.telegram)

    def test_settings_cached(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"server": {"port": 9100}})
        s = load_settings(path, env={})
        assert get_settings() is s


class TestEnvOverrides:
    def test_log_level_env_overrides_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"logging": {"level": "WARNING"}})
        s = load_settings(path, env={"LOG_LEVEL": "debug"})
        assert s.logging.level == "debug"

    def test_port_env_overrides_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"server": {"port": 8000}})
        s = load_settings(path, env={"PORT": "12345"})
        assert s.server.port == 12345

    def test_bad_port_env(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="PORT"):
            load_settings(tmp_path / "nope.yaml", env={"PORT": "http"})

    def test_blank_env_ignored(self, tmp_path: Path) -> None:
        s = load_settings(tmp_path / "nope.yaml", env={"PORT": " ", "LOG_LEVEL": ""})
        assert s.server.port == 10000
        assert s.logging.level == "INFO"


class TestValidation:
    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("monitor: [unclosed")
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path, env={})

    def test_rising_thresholds_out_of_order(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"monitor": {"thresholds": {"warning": 300, "critical": 200}}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_falling_thresholds_order(self) -> None:
        cfg = ThresholdConfig(direction="falling", warning=Decimal("50"), critical=Decimal("20"))
        assert cfg.direction == ThresholdDirection.FALLING
        with pytest.raises(ValueError):
            ThresholdConfig(direction="falling", warning=Decimal("20"), critical=Decimal("50"))

    def test_http_source_requires_url(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"source": {"kind": "http"}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_zero_attempts_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"monitor": {"retry": {"max_attempts": 0}}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_zero_retention_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"monitor": {"retention_size": 0}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_bad_trusted_proxy_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"server": {"trusted_proxies": ["not-an-ip"]}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})

    def test_bad_naive_timezone_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"source": {"naive_timezone": "Mars/Olympus"}})
        with pytest.raises(ConfigError):
            load_settings(path, env={})


class TestNaiveTimezone:
    @pytest.mark.parametrize("text", ["+07:00", "+0700"])
    def test_fixed_offset(self, text: str) -> None:
        tz = SourceConfig(naive_timezone=text).naive_tzinfo
        assert tz.utcoffset(None) == datetime.timedelta(hours=7)

    @pytest.mark.parametrize("text", ["UTC", "utc", "Z", ""])
    def test_utc_aliases(self, text: str) -> None:
        assert parse_utc_offset(text) is datetime.UTC

    def test_trusted_networks_accepted(self) -> None:
        cfg = ServerConfig(trusted_proxies=["127.0.0.1", "10.0.0.0/8", "::1"])
        assert len(cfg.trusted_proxies) == 3
