"""End-to-end flows: bootstrap a fresh server, or run it in production mode."""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

import httpx

from thunder_bootstrap.client import ApiClient
from thunder_bootstrap.config import ThunderConfig
from thunder_bootstrap.errors import ServerNotReadyError
from thunder_bootstrap.provision.context import ProvisionContext
from thunder_bootstrap.runner import BootstrapRunner, BootstrapSummary
from thunder_bootstrap.server.lifecycle import ServerLifecycle

logger = logging.getLogger(__name__)

__all__ = ["run_attached", "run_bootstrap", "run_server", "run_setup", "sigterm_as_interrupt"]


@contextmanager
def sigterm_as_interrupt() -> Iterator[None]:
    """Turn SIGTERM into KeyboardInterrupt so it takes the same teardown path as Ctrl+C."""

    def _raise_interrupt(signum: int, frame: FrameType | None) -> None:
        raise KeyboardInterrupt(f"signal {signum}")

    try:
        previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    except ValueError:
        # Not the main thread; signals can't be rerouted here
        yield
        return

    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def run_bootstrap(config: ThunderConfig, client: ApiClient) -> BootstrapSummary:
    """Run the configured bootstrap scripts against an already running server."""
    settings = config.bootstrap
    context = ProvisionContext(
        client=client,
        conflict_markers=tuple(settings.conflict_markers),
    )
    runner = BootstrapRunner(
        directory=settings.resolved_scripts_dir,
        context=context,
        fail_fast=settings.fail_fast,
        skip_pattern=settings.skip_pattern,
        only_pattern=settings.only_pattern,
    )
    return runner.run()


def run_attached(
    config: ThunderConfig,
    transport: httpx.BaseTransport | None = None,
) -> BootstrapSummary:
    """Bootstrap a server started elsewhere, after checking it is ready.

    Raises:
        ServerNotReadyError: Readiness endpoint did not answer 200; no step ran
    """
    with ApiClient.from_settings(config.api, transport=transport) as client:
        ready = client.get(config.server.readiness_path)
        if ready.status_code != 200:
            raise ServerNotReadyError(
                f"Server at {client.base_url} is not ready: {ready.describe()}",
                ready.status_code,
                ready.body or (ready.error or ""),
            )
        return run_bootstrap(config, client)


def run_setup(
    config: ThunderConfig,
    transport: httpx.BaseTransport | None = None,
) -> BootstrapSummary:
    """Start the server with security checks disabled, bootstrap it, stop it.

    The server is stopped exactly once whether bootstrap succeeds, a step
    fails, readiness times out, or the process is interrupted.

    Raises:
        ReadinessTimeoutError: Server never became ready; nothing was provisioned
        ServerStartError: Server could not be launched or died during startup
        ConfigError: Binary, debugger or scripts directory missing
    """
    with ApiClient.from_settings(config.api, transport=transport) as client:
        lifecycle = ServerLifecycle(config.server, config.api, security_bypass=True, client=client)
        with sigterm_as_interrupt(), lifecycle:
            lifecycle.start()
            lifecycle.wait_until_ready()
            return lifecycle.run(lambda: run_bootstrap(config, client))


def run_server(
    config: ThunderConfig,
    transport: httpx.BaseTransport | None = None,
) -> int:
    """Run the server in production mode in the foreground until it exits.

    Returns:
        The server's exit code
    """
    with ApiClient.from_settings(config.api, transport=transport) as client:
        lifecycle = ServerLifecycle(config.server, config.api, security_bypass=False, client=client)
        with sigterm_as_interrupt(), lifecycle:
            handle = lifecycle.start()
            lifecycle.wait_until_ready()
            logger.info(f"Server running at {handle.base_url} (PID {handle.pid}); Ctrl+C to stop")
            return lifecycle.wait()
