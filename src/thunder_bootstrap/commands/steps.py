"""thunder-bootstrap steps command - show what a bootstrap run would execute."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from thunder_bootstrap.commands._common import apply_overrides, filter_options

if TYPE_CHECKING:
    from thunder_bootstrap.cli import BootstrapContext


@click.command("steps")
@filter_options
@click.pass_obj
def steps(
    ctx: BootstrapContext,
    skip_pattern: str | None,
    only_pattern: str | None,
    scripts_dir: Path | None,
) -> None:
    """List discovered bootstrap steps in execution order.

    \b
    Examples:
        thunder-bootstrap steps
        thunder-bootstrap steps --skip sample
    """
    from rich.table import Table

    from thunder_bootstrap.commands._common import fail
    from thunder_bootstrap.errors import BootstrapError
    from thunder_bootstrap.logging import console
    from thunder_bootstrap.runner import discover_steps, filter_steps

    config = ctx.require_config()
    try:
        apply_overrides(
            config,
            skip_pattern=skip_pattern,
            only_pattern=only_pattern,
            scripts_dir=scripts_dir,
        )
        settings = config.bootstrap
        discovered = discover_steps(settings.resolved_scripts_dir)
    except BootstrapError as e:
        fail(e)

    selected, _ = filter_steps(discovered, settings.skip_pattern, settings.only_pattern)
    chosen = {step.name for step in selected}

    table = Table(title=f"Bootstrap steps in {settings.resolved_scripts_dir}")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Kind")
    table.add_column("Runs")
    for index, step in enumerate(discovered, start=1):
        runs = "yes" if step.name in chosen else "[dim]skipped[/dim]"
        table.add_row(str(index), step.name, step.kind.value, runs)
    console.print(table)


__all__ = ["steps"]
