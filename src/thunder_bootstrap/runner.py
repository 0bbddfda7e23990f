"""Bootstrap runner - discover, filter and execute provisioner scripts in order.

Steps are the files of one directory, executed in ascending name order; a
numeric prefix (``01-``, ``02-``) is the only ordering mechanism. Python steps
are loaded in-process and receive the shared :class:`ProvisionContext`; any
other executable is run as a subprocess where exit code 0 means success.
"""

from __future__ import annotations

import importlib.util
import logging
import os
import re
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from thunder_bootstrap.errors import BootstrapError, ConfigError, ExitCode, ProvisionError
from thunder_bootstrap.provision.context import ProvisionContext

logger = logging.getLogger(__name__)

__all__ = [
    "BootstrapRunner",
    "BootstrapSummary",
    "ProvisionStep",
    "StepKind",
    "StepResult",
    "discover_steps",
    "filter_steps",
    "render_summary",
]


class StepKind(str, Enum):
    PYTHON = "python"
    SHELL = "shell"
    EXECUTABLE = "executable"


@dataclass(frozen=True)
class ProvisionStep:
    """One discovered provisioner script; ordered by ``name``."""

    name: str
    path: Path

    @property
    def kind(self) -> StepKind:
        if self.path.suffix == ".py":
            return StepKind.PYTHON
        if self.path.suffix == ".sh" and not os.access(self.path, os.X_OK):
            return StepKind.SHELL
        return StepKind.EXECUTABLE


@dataclass
class StepResult:
    """Outcome of executing one step."""

    name: str
    success: bool
    elapsed: float
    exit_code: int | None = None
    error: str | None = None


@dataclass
class BootstrapSummary:
    """Aggregate counters for one bootstrap run.

    ``discovered == executed + skipped`` always holds: steps excluded by a
    filter and steps never reached after a fail-fast abort both count as
    skipped.
    """

    discovered: int = 0
    executed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    created: int = 0
    adopted: int = 0
    results: list[StepResult] = field(default_factory=list)

    def record(self, result: StepResult) -> None:
        self.results.append(result)
        self.executed += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.SUCCESS if self.success else ExitCode.STEP_FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "executed": self.executed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "created": self.created,
            "adopted": self.adopted,
            "exit_code": int(self.exit_code),
        }


def discover_steps(directory: Path) -> list[ProvisionStep]:
    """List runnable scripts in ``directory`` sorted by name.

    Hidden and ``_``-prefixed files, subdirectories, and files that are neither
    Python, shell, nor executable are ignored.

    Raises:
        ConfigError: If ``directory`` does not exist.
    """
    if not directory.is_dir():
        raise ConfigError(f"Bootstrap scripts directory not found: {directory}", path=str(directory))

    steps = []
    for path in directory.iterdir():
        if not path.is_file() or path.name.startswith((".", "_")):
            continue
        if path.suffix in (".py", ".sh") or os.access(path, os.X_OK):
            steps.append(ProvisionStep(name=path.name, path=path))
    return sorted(steps, key=lambda step: step.name)


def filter_steps(
    steps: list[ProvisionStep],
    skip_pattern: str | None = None,
    only_pattern: str | None = None,
) -> tuple[list[ProvisionStep], list[ProvisionStep]]:
    """Split steps into (selected, skipped).

    A step whose name matches ``skip_pattern`` is skipped; when ``only_pattern``
    is set, steps not matching it are skipped as well. Both are regular
    expressions searched anywhere in the name.
    """
    selected: list[ProvisionStep] = []
    skipped: list[ProvisionStep] = []
    for step in steps:
        if skip_pattern and re.search(skip_pattern, step.name):
            skipped.append(step)
        elif only_pattern and not re.search(only_pattern, step.name):
            skipped.append(step)
        else:
            selected.append(step)
    return selected, skipped


class BootstrapRunner:
    """Execute the provisioner scripts of one directory against a running server.

    Attributes:
        directory: Directory holding the scripts
        context: Run context handed to Python steps
        fail_fast: Stop at the first failed step
        skip_pattern: Regex of step names to skip
        only_pattern: Regex of step names to run exclusively
    """

    def __init__(
        self,
        directory: Path,
        context: ProvisionContext,
        fail_fast: bool = True,
        skip_pattern: str | None = None,
        only_pattern: str | None = None,
    ) -> None:
        self.directory = directory
        self.context = context
        self.fail_fast = fail_fast
        self.skip_pattern = skip_pattern
        self.only_pattern = only_pattern

    def run(self) -> BootstrapSummary:
        """Run every selected step in order and return the summary."""
        steps = discover_steps(self.directory)
        selected, skipped = filter_steps(steps, self.skip_pattern, self.only_pattern)

        summary = BootstrapSummary(discovered=len(steps), skipped=len(skipped))
        logger.info(f"Discovered {len(steps)} bootstrap step(s) in {self.directory}")
        for step in skipped:
            logger.info(f"Skipping {step.name}")

        for index, step in enumerate(selected):
            result = self._execute(step)
            summary.record(result)
            if not result.success and self.fail_fast:
                remaining = len(selected) - index - 1
                summary.skipped += remaining
                if remaining:
                    logger.error(f"Fail-fast: not running {remaining} remaining step(s)")
                break

        summary.created = len(self.context.created)
        summary.adopted = len(self.context.adopted)
        return summary

    def _execute(self, step: ProvisionStep) -> StepResult:
        logger.info(f"Running {step.name}")
        start = time.monotonic()
        exit_code: int | None = None
        error: str | None = None

        try:
            if step.kind is StepKind.PYTHON:
                self._run_python(step)
                exit_code = 0
            else:
                exit_code = self._run_process(step)
                if exit_code != 0:
                    error = f"exited with code {exit_code}"
        except ProvisionError as e:
            error = e.message
        except SystemExit as e:
            # sys.exit() inside a Python step ends that step, not the run
            exit_code = _exit_status(e.code)
            if exit_code != 0:
                error = f"exited with code {exit_code}"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.debug(f"{step.name} raised", exc_info=True)

        elapsed = time.monotonic() - start
        success = error is None
        if success:
            logger.info(f"{step.name} completed in {elapsed:.2f}s")
        else:
            logger.error(f"{step.name} failed after {elapsed:.2f}s: {error}")
        return StepResult(
            name=step.name,
            success=success,
            elapsed=elapsed,
            exit_code=exit_code,
            error=error,
        )

    def _run_python(self, step: ProvisionStep) -> None:
        module_name = "thunder_bootstrap_step_" + re.sub(r"\W", "_", step.path.stem)
        spec = importlib.util.spec_from_file_location(module_name, step.path)
        if spec is None or spec.loader is None:
            raise BootstrapError(f"Cannot load {step.path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        provision = getattr(module, "provision", None)
        if not callable(provision):
            raise BootstrapError(f"{step.name} does not define provision(ctx)")
        provision(self.context)

    def _run_process(self, step: ProvisionStep) -> int:
        command = [str(step.path.resolve())]
        if step.kind is StepKind.SHELL:
            command.insert(0, "bash")

        client = self.context.client
        env = {
            **os.environ,
            "THUNDER_API_BASE": client.base_url,
            "THUNDER_API_VERIFY_TLS": "true" if client.verify_tls else "false",
        }
        completed = subprocess.run(command, env=env, cwd=step.path.parent, check=False)
        return completed.returncode


def _exit_status(code: object) -> int:
    """Map a ``SystemExit.code`` to the status the interpreter would exit with."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def render_summary(summary: BootstrapSummary, console: Console) -> None:
    """Print the per-step table and aggregate counts."""
    if summary.results:
        table = Table(title="Bootstrap steps")
        table.add_column("Step")
        table.add_column("Result")
        table.add_column("Time", justify="right")
        for result in summary.results:
            status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
            table.add_row(result.name, status, f"{result.elapsed:.2f}s")
        console.print(table)

    console.print(
        f"Discovered: {summary.discovered}  Executed: {summary.executed}  "
        f"Succeeded: {summary.succeeded}  Failed: {summary.failed}  "
        f"Skipped: {summary.skipped}"
    )
    console.print(f"Resources created: {summary.created}  Already present: {summary.adopted}")
