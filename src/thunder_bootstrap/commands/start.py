"""thunder-bootstrap start command - run the server in production mode."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import click

from thunder_bootstrap.commands._common import apply_overrides, debug_options

if TYPE_CHECKING:
    from thunder_bootstrap.cli import BootstrapContext


@click.command("start")
@debug_options
@click.pass_obj
def start(ctx: BootstrapContext, debug: bool, debug_port: int | None) -> None:
    """Run the server in the foreground with security checks enabled.

    Any security bypass variable in the current environment is removed from
    the server's environment. Ctrl+C stops the server.

    \b
    Examples:
        thunder-bootstrap start
        thunder-bootstrap start --debug
    """
    from thunder_bootstrap.commands._common import fail
    from thunder_bootstrap.errors import BootstrapError, ExitCode
    from thunder_bootstrap.logging import print_info
    from thunder_bootstrap.orchestrate import run_server

    config = ctx.require_config()
    try:
        apply_overrides(config, debug=debug, debug_port=debug_port)
        returncode = run_server(config)
    except BootstrapError as e:
        fail(e)
    except KeyboardInterrupt:
        print_info("Server stopped")
        sys.exit(ExitCode.INTERRUPTED)

    if returncode != 0:
        sys.exit(ExitCode.FATAL_ERROR)


__all__ = ["start"]
