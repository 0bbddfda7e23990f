"""thunder-bootstrap CLI - local Thunder server bootstrap and lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

from dotenv import load_dotenv

# Load .env file before any other imports that might use env vars
load_dotenv()

import click  # noqa: E402

from thunder_bootstrap import __version__  # noqa: E402
from thunder_bootstrap.commands import init, run, setup, start, steps  # noqa: E402

if TYPE_CHECKING:
    from thunder_bootstrap.config import ThunderConfig
    from thunder_bootstrap.errors import ConfigError

VerbosityLevel = Literal["quiet", "normal", "verbose"]


class BootstrapContext:
    """Shared context for CLI commands."""

    def __init__(self) -> None:
        self.config: ThunderConfig | None = None
        self.config_error: ConfigError | None = None
        self.verbosity: VerbosityLevel = "normal"

    def require_config(self) -> ThunderConfig:
        """Return the loaded configuration, or exit if it failed validation."""
        if self.config is None:
            from thunder_bootstrap.commands._common import fail
            from thunder_bootstrap.errors import ConfigError

            fail(self.config_error or ConfigError("Configuration not loaded"))
        return self.config


pass_context = click.make_pass_decorator(BootstrapContext, ensure=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output")
@click.option("--traceback", is_flag=True, help="Show full tracebacks on errors")
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.version_option(version=__version__, prog_name="thunder-bootstrap")
@pass_context
def cli(
    ctx: BootstrapContext,
    verbose: bool,
    quiet: bool,
    traceback: bool,
    config: Path | None,
) -> None:
    """thunder-bootstrap - Bootstrap a local Thunder server.

    \b
    Commands:
      setup    Start the server with security off, provision, stop it
      run      Provision against a server that is already running
      start    Run the server in production mode (foreground)
      steps    List bootstrap steps and which ones would run
      init     Write a default thunder-bootstrap.toml

    \b
    Environment:
      BOOTSTRAP_FAIL_FAST      true/false, abort at first failure (default true)
      BOOTSTRAP_SKIP_PATTERN   regex of step names to skip
      BOOTSTRAP_ONLY_PATTERN   regex of step names to run exclusively
      THUNDER_API_BASE_URL     server base URL (default https://localhost:8090)

    Use 'thunder-bootstrap <command> --help' for details.
    """
    from thunder_bootstrap.config import ThunderConfig
    from thunder_bootstrap.errors import ConfigError
    from thunder_bootstrap.logging import setup_logging

    if quiet:
        ctx.verbosity = "quiet"
    elif verbose:
        ctx.verbosity = "verbose"
    else:
        ctx.verbosity = "normal"

    setup_logging(ctx.verbosity)

    # Commands that need configuration fail later via require_config()
    try:
        ctx.config = ThunderConfig.load(config)
    except ConfigError as e:
        ctx.config_error = e


cli.add_command(setup)
cli.add_command(run)
cli.add_command(start)
cli.add_command(steps)
cli.add_command(init)


def main() -> None:
    """Entry point for the CLI."""
    import sys

    traceback_mode = "--traceback" in sys.argv

    try:
        cli()
    except click.ClickException:
        # Let Click handle its own exceptions
        raise
    except KeyboardInterrupt:
        # Clean exit on Ctrl+C
        sys.exit(130)
    except Exception as e:
        from thunder_bootstrap.errors import ExitCode
        from thunder_bootstrap.logging import print_error, print_info

        print_error(f"Unexpected error: {e}")

        if traceback_mode:
            print_info("")
            print_info("Full traceback (--traceback mode):")
            import traceback

            traceback.print_exc()
        else:
            print_info("")
            print_info("Run with --traceback for full traceback.")

        sys.exit(ExitCode.FATAL_ERROR)


if __name__ == "__main__":
    main()
