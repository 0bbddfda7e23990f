"""thunder-bootstrap init command - write a default thunder-bootstrap.toml."""

from __future__ import annotations

import sys
from pathlib import Path

import click


@click.command("init")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing thunder-bootstrap.toml")
def init(force: bool) -> None:
    """Write a thunder-bootstrap.toml with default settings to the current directory."""
    from thunder_bootstrap.config import CONFIG_FILE, get_default_config_toml
    from thunder_bootstrap.errors import ExitCode
    from thunder_bootstrap.logging import print_error, print_info, print_success, print_warning

    config_path = Path.cwd() / CONFIG_FILE

    if config_path.exists() and not force:
        print_warning(f"Configuration file already exists: {config_path}")
        print_info("Use --force to overwrite")
        sys.exit(ExitCode.CONFIG_ERROR)

    try:
        config_path.write_text(get_default_config_toml())
    except OSError as e:
        print_error(f"Failed to create config file: {e}")
        sys.exit(ExitCode.CONFIG_ERROR)

    print_success(f"Created {config_path}")
    print_info("Edit it, then run 'thunder-bootstrap setup'.")


__all__ = ["init"]
