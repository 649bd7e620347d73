"""Tests for setup_logging — level precedence and handler wiring."""

from __future__ import annotations

import logging

import pytest

from gold_monitor.core.config import load_settings, reset_settings
from gold_monitor.core.logging import setup_logging


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    reset_settings()


class TestSetupLogging:
    def test_explicit_level_wins(self, tmp_path) -> None:
        load_settings(tmp_path / "missing.yaml", env={"LOG_LEVEL": "ERROR"})
        setup_logging(level="DEBUG", fmt="console")
        assert logging.getLogger().level == logging.DEBUG

    def test_env_level_used_without_override(self, tmp_path) -> None:
        load_settings(tmp_path / "missing.yaml", env={"LOG_LEVEL": "warning"})
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_single_handler(self, tmp_path) -> None:
        load_settings(tmp_path / "missing.yaml", env={})
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_access_log_quieted(self, tmp_path) -> None:
        load_settings(tmp_path / "missing.yaml", env={})
        setup_logging(level="DEBUG")
        assert logging.getLogger("aiohttp.access").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, tmp_path) -> None:
        load_settings(tmp_path / "missing.yaml", env={})
        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO
