"""Logging configuration for thunder-bootstrap.

Log records go to stderr through Rich so that stdout carries only command
output (step listings, the run summary). With ``-v`` the HTTP traffic to the
Thunder API is logged as well.
"""

from __future__ import annotations

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

Verbosity = Literal["quiet", "normal", "verbose"]

# Console instances for stdout/stderr
console = Console()
err_console = Console(stderr=True)

LOGGER_NAME = "thunder_bootstrap"

# httpx logs every request at INFO; only surfaced in verbose mode
HTTP_LOGGERS = ("httpx", "httpcore")

LEVELS: dict[Verbosity, int] = {
    "quiet": logging.ERROR,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}


def _make_handler(verbose: bool) -> RichHandler:
    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(verbosity: Verbosity = "normal") -> logging.Logger:
    """Configure the package logger and the HTTP client loggers.

    Safe to call more than once; earlier handlers are replaced.
    """
    verbose = verbosity == "verbose"
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(LEVELS[verbosity])
    logger.addHandler(_make_handler(verbose))
    # Steps that log through the root logger must not print twice
    logger.propagate = False

    for name in HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        http_logger.handlers.clear()
        if verbose:
            http_logger.setLevel(logging.DEBUG if name == "httpx" else logging.INFO)
            http_logger.addHandler(_make_handler(verbose))
            http_logger.propagate = False
        else:
            http_logger.setLevel(logging.WARNING)
            http_logger.propagate = True

    return logger


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def print_warning(message: str) -> None:
    """Print a warning message to stderr."""
    err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)


def print_success(message: str) -> None:
    """Print a success message to stdout."""
    console.print(f"[green]{escape(message)}[/green]")


def print_info(message: str) -> None:
    """Print an info message to stdout."""
    console.print(escape(message), highlight=False)
