"""thunder-bootstrap run command - provision an already running server."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from thunder_bootstrap.commands._common import apply_overrides, runner_options

if TYPE_CHECKING:
    from thunder_bootstrap.cli import BootstrapContext


@click.command("run")
@runner_options
@click.pass_obj
def run(
    ctx: BootstrapContext,
    fail_fast: bool | None,
    skip_pattern: str | None,
    only_pattern: str | None,
    scripts_dir: Path | None,
) -> None:
    """Run the bootstrap steps against a server that is already up.

    The server must have been started with security checks disabled. Nothing
    is provisioned unless its readiness endpoint answers 200.

    \b
    Examples:
        thunder-bootstrap run
        thunder-bootstrap run --only '^01-'
    """
    from thunder_bootstrap.commands._common import fail
    from thunder_bootstrap.errors import BootstrapError
    from thunder_bootstrap.logging import console, print_success
    from thunder_bootstrap.orchestrate import run_attached
    from thunder_bootstrap.runner import render_summary

    config = ctx.require_config()
    try:
        apply_overrides(
            config,
            fail_fast=fail_fast,
            skip_pattern=skip_pattern,
            only_pattern=only_pattern,
            scripts_dir=scripts_dir,
        )
        summary = run_attached(config)
    except BootstrapError as e:
        fail(e)

    render_summary(summary, console)
    if not summary.success:
        sys.exit(summary.exit_code)
    print_success("Bootstrap complete")


__all__ = ["run"]
