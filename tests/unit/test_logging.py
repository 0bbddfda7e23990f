"""Tests for logging setup and console helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from thunder_bootstrap.logging import (
    HTTP_LOGGERS,
    LOGGER_NAME,
    err_console,
    print_error,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_loggers() -> Iterator[None]:
    saved = {}
    for name in (LOGGER_NAME, *HTTP_LOGGERS):
        logger = logging.getLogger(name)
        saved[name] = (logger.level, logger.propagate, list(logger.handlers))
    yield
    for name, (level, propagate, handlers) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = propagate
        logger.handlers[:] = handlers


# =============================================================================
# setup_logging
# =============================================================================


class TestSetupLogging:
    """Tests for verbosity handling."""

    @pytest.mark.parametrize(
        ("verbosity", "level"),
        [("quiet", logging.ERROR), ("normal", logging.INFO), ("verbose", logging.DEBUG)],
    )
    def test_levels(self, verbosity, level) -> None:
        logger = setup_logging(verbosity)

        assert logger.name == LOGGER_NAME
        assert logger.level == level
        assert not logger.propagate

    def test_repeated_setup_keeps_one_handler(self) -> None:
        setup_logging("normal")
        logger = setup_logging("verbose")

        assert len(logger.handlers) == 1

    def test_http_traffic_hidden_by_default(self) -> None:
        """Test httpx request lines stay out of normal output."""
        setup_logging("normal")

        httpx_logger = logging.getLogger("httpx")
        assert not httpx_logger.isEnabledFor(logging.INFO)
        assert httpx_logger.handlers == []

    def test_http_traffic_shown_when_verbose(self) -> None:
        setup_logging("verbose")

        httpx_logger = logging.getLogger("httpx")
        assert httpx_logger.isEnabledFor(logging.DEBUG)
        assert len(httpx_logger.handlers) == 1

    def test_verbose_then_normal_detaches_http_handler(self) -> None:
        setup_logging("verbose")
        setup_logging("normal")

        assert logging.getLogger("httpx").handlers == []
        assert logging.getLogger("httpcore").propagate


# =============================================================================
# Console helpers
# =============================================================================


class TestConsoleHelpers:
    """Tests for the print helpers."""

    def test_error_body_is_not_markup(self) -> None:
        """Test a response body with square brackets is printed verbatim."""
        with err_console.capture() as capture:
            print_error('POST /roles failed (HTTP 400): {"permissions": ["[bold]system"]}')

        assert '["[bold]system"]' in capture.get()
