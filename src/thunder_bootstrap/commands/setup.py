"""thunder-bootstrap setup command - bootstrap a freshly started server."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from thunder_bootstrap.commands._common import apply_overrides, debug_options, runner_options

if TYPE_CHECKING:
    from thunder_bootstrap.cli import BootstrapContext


@click.command("setup")
@runner_options
@debug_options
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write server output to this file",
)
@click.pass_obj
def setup(
    ctx: BootstrapContext,
    fail_fast: bool | None,
    skip_pattern: str | None,
    only_pattern: str | None,
    scripts_dir: Path | None,
    debug: bool,
    debug_port: int | None,
    log_file: Path | None,
) -> None:
    """Start the server with security checks disabled, provision it, stop it.

    The server is always stopped afterwards, including on failure, readiness
    timeout, and Ctrl+C.

    \b
    Examples:
        thunder-bootstrap setup
        thunder-bootstrap setup --no-fail-fast --skip sample
        thunder-bootstrap setup --debug --debug-port 2345
    """
    from thunder_bootstrap.commands._common import fail
    from thunder_bootstrap.errors import BootstrapError, ExitCode
    from thunder_bootstrap.logging import console, print_success, print_warning
    from thunder_bootstrap.orchestrate import run_setup
    from thunder_bootstrap.runner import render_summary

    config = ctx.require_config()
    try:
        apply_overrides(
            config,
            fail_fast=fail_fast,
            skip_pattern=skip_pattern,
            only_pattern=only_pattern,
            scripts_dir=scripts_dir,
            debug=debug,
            debug_port=debug_port,
        )
        if log_file:
            config.server = config.server.override(log_file=log_file)
        summary = run_setup(config)
    except BootstrapError as e:
        fail(e)
    except KeyboardInterrupt:
        print_warning("Interrupted; server stopped")
        sys.exit(ExitCode.INTERRUPTED)

    render_summary(summary, console)
    if not summary.success:
        sys.exit(summary.exit_code)
    print_success("Bootstrap complete")


__all__ = ["setup"]
