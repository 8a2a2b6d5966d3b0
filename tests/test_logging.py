"""Tests for logging utilities."""

from __future__ import annotations

import logging

from crm_archiver.core.config import LoggingSettings
from crm_archiver.core.logging import configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_http_client_loggers_quiet_by_default() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
