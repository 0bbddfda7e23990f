"""Options and helpers shared by the bootstrap commands."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click

from thunder_bootstrap.errors import BootstrapError

if TYPE_CHECKING:
    from thunder_bootstrap.config import ThunderConfig

F = Callable[..., Any]


def filter_options(fn: F) -> F:
    """Add --skip/--only/--scripts-dir to a command."""
    fn = click.option(
        "--scripts-dir",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=None,
        help="Directory of provisioner scripts (default: built-in scripts)",
    )(fn)
    fn = click.option(
        "--only",
        "only_pattern",
        type=str,
        default=None,
        help="Run only steps whose name matches this regex",
    )(fn)
    fn = click.option(
        "--skip",
        "skip_pattern",
        type=str,
        default=None,
        help="Skip steps whose name matches this regex",
    )(fn)
    return fn


def runner_options(fn: F) -> F:
    """Add the filter options plus --fail-fast/--no-fail-fast."""
    fn = filter_options(fn)
    fn = click.option(
        "--fail-fast/--no-fail-fast",
        default=None,
        help="Abort at the first failed step (default: BOOTSTRAP_FAIL_FAST or on)",
    )(fn)
    return fn


def debug_options(fn: F) -> F:
    """Add --debug/--debug-port to a server-launching command."""
    fn = click.option(
        "--debug-port",
        type=int,
        default=None,
        help="Port the debugger listens on (default: 2345)",
    )(fn)
    fn = click.option(
        "--debug",
        "debug",
        is_flag=True,
        default=False,
        help="Run the server under the debugger (headless, attachable)",
    )(fn)
    return fn


def apply_overrides(
    config: ThunderConfig,
    *,
    fail_fast: bool | None = None,
    skip_pattern: str | None = None,
    only_pattern: str | None = None,
    scripts_dir: Path | None = None,
    debug: bool | None = None,
    debug_port: int | None = None,
) -> ThunderConfig:
    """Apply command-line values on top of file and environment settings."""
    config.bootstrap = config.bootstrap.override(
        fail_fast=fail_fast,
        skip_pattern=skip_pattern,
        only_pattern=only_pattern,
        scripts_dir=scripts_dir,
    )
    config.server = config.server.override(
        debug=debug or None,
        debug_port=debug_port,
    )
    return config


def fail(error: BootstrapError) -> NoReturn:
    """Print a bootstrap error and exit with its code."""
    from thunder_bootstrap.logging import print_error

    print_error(error.message)
    sys.exit(error.exit_code)
