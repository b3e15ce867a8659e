"""Tests for logging setup."""

import logging
from collections.abc import Generator

import pytest
import structlog

from proxyswitch.config.settings import Settings
from proxyswitch.core.logging import configure_structlog, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger() -> Generator[None, None, None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestSetupLogging:
    def test_levels(self) -> None:
        setup_logging(log_level="WARNING")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("proxyswitch").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("python_socks").level == logging.WARNING

    def test_debug_surfaces_httpx_requests(self) -> None:
        setup_logging(log_level="debug")

        assert logging.getLogger("httpx").level == logging.INFO
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(log_level="chatty")

        assert logging.getLogger().level == logging.INFO

    def test_settings_configure_logging(self) -> None:
        settings = Settings(  # type: ignore[call-arg]
            _env_file=None, log_level="ERROR", json_logs=True
        )

        settings.configure_logging()

        assert logging.getLogger("proxyswitch").level == logging.ERROR
        assert logging.getLogger("httpcore").level == logging.ERROR

    def test_configure_structlog_takes_no_options(self) -> None:
        configure_structlog()

        assert structlog.is_configured()

    def test_get_logger_binds_name(self) -> None:
        logger = get_logger("proxyswitch.tests")

        assert logger is not None
        logger.debug("logger_ready")
