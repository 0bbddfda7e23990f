"""End-to-end tests for the setup and production flows against the fake server."""

from __future__ import annotations

import signal
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from thunder_bootstrap.config import ApiSettings, BootstrapSettings, ServerSettings, ThunderConfig
from thunder_bootstrap.errors import ConfigError, ExitCode, ReadinessTimeoutError, ServerNotReadyError
from thunder_bootstrap.orchestrate import run_attached, run_server, run_setup, sigterm_as_interrupt

BASE_URL = "https://thunder.test"
POPEN = "thunder_bootstrap.server.lifecycle.subprocess.Popen"


class ServerProcess:
    """Fake server process counting teardown signals."""

    pid = 9000

    def __init__(self) -> None:
        self.returncode: int | None = None
        self.env: dict[str, str] = {}
        self.terminated = 0
        self.killed = 0

    def poll(self) -> int | None:
        return self.returncode

    def terminate(self) -> None:
        self.terminated += 1
        self.returncode = -15

    def kill(self) -> None:
        self.killed += 1
        self.returncode = -9

    def wait(self, timeout: float | None = None) -> int:
        if self.returncode is None:
            # Running in the foreground until the server exits by itself
            self.returncode = 0
        return self.returncode


@pytest.fixture
def process() -> Iterator[ServerProcess]:
    fake = ServerProcess()

    def _popen(command, **kwargs):
        fake.env = kwargs["env"]
        return fake

    with patch(POPEN, side_effect=_popen):
        yield fake


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ThunderConfig]:
    binary = tmp_path / "thunder"
    binary.write_text("#!/bin/sh\n")

    def _make(scripts_dir: Path | None = None, **bootstrap: object) -> ThunderConfig:
        return ThunderConfig(
            api=ApiSettings(base_url=BASE_URL),
            server=ServerSettings(binary=binary, working_dir=tmp_path, release_port=False),
            bootstrap=BootstrapSettings(scripts_dir=scripts_dir, **bootstrap),
        )

    return _make


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Setup flow
# =============================================================================


class TestRunSetup:
    """Tests that teardown happens exactly once on every exit path."""

    def test_success(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        summary = run_setup(make_config(), transport=transport)

        assert summary.success
        assert summary.created == 6
        assert process.terminated == 1
        assert process.env["THUNDER_SKIP_SECURITY"] == "true"
        assert fake_thunder.requests[0] == ("GET", "/health/readiness")

    def test_rerun_adopts_everything(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
    ) -> None:
        run_setup(make_config(), transport=transport)
        process.returncode = None

        summary = run_setup(make_config(), transport=transport)

        assert summary.success
        assert summary.created == 0
        assert summary.adopted == 6
        assert process.terminated == 2

    def test_readiness_timeout_provisions_nothing(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        fake_thunder.ready = False

        with patch("thunder_bootstrap.server.lifecycle.time", FakeClock()):
            with pytest.raises(ReadinessTimeoutError):
                run_setup(make_config(), transport=transport)

        assert process.terminated == 1
        assert all(method == "GET" for method, _ in fake_thunder.requests)

    def test_step_failure(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        fake_thunder.fail_paths["/roles"] = 500

        summary = run_setup(make_config(), transport=transport)

        assert not summary.success
        assert summary.failed == 1
        assert process.terminated == 1

    def test_interrupt_during_step(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        scripts_dir: Path,
        write_step: Callable[..., Path],
    ) -> None:
        """Test Ctrl+C in the middle of a step still stops the server once."""
        write_step("01-slow.py", "raise KeyboardInterrupt")

        with pytest.raises(KeyboardInterrupt):
            run_setup(make_config(scripts_dir), transport=transport)

        assert process.terminated == 1

    def test_missing_scripts_dir(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        tmp_path: Path,
    ) -> None:
        with pytest.raises(ConfigError):
            run_setup(make_config(tmp_path / "missing"), transport=transport)

        assert process.terminated == 1

    def test_filters_from_settings(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        summary = run_setup(make_config(skip_pattern="sample"), transport=transport)

        assert summary.executed == 1
        assert summary.skipped == 1
        assert fake_thunder.count("applications") == 0


# =============================================================================
# Attached flow
# =============================================================================


class TestRunAttached:
    """Tests for bootstrapping a server that someone else started."""

    def test_ready_server_is_bootstrapped(
        self,
        make_config: Callable[..., ThunderConfig],
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        summary = run_attached(make_config(), transport=transport)

        assert summary.success
        assert summary.created == 6
        assert fake_thunder.requests[0] == ("GET", "/health/readiness")

    def test_unready_server_provisions_nothing(
        self,
        make_config: Callable[..., ThunderConfig],
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        fake_thunder.ready = False

        with pytest.raises(ServerNotReadyError) as exc_info:
            run_attached(make_config(), transport=transport)

        assert exc_info.value.exit_code == ExitCode.READINESS_TIMEOUT
        assert exc_info.value.last_status == 503
        assert fake_thunder.requests == [("GET", "/health/readiness")]

    def test_unreachable_server(self, make_config: Callable[..., ThunderConfig]) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ServerNotReadyError) as exc_info:
            run_attached(make_config(), transport=httpx.MockTransport(refuse))

        assert exc_info.value.last_status == 0
        assert "unreachable" in exc_info.value.message


# =============================================================================
# Production flow
# =============================================================================


class TestRunServer:
    """Tests for running the server in the foreground."""

    def test_production_mode(
        self,
        make_config: Callable[..., ThunderConfig],
        process: ServerProcess,
        transport: httpx.MockTransport,
        fake_thunder,
    ) -> None:
        returncode = run_server(make_config(), transport=transport)

        assert returncode == 0
        assert "THUNDER_SKIP_SECURITY" not in process.env
        assert not any(method == "POST" for method, _ in fake_thunder.requests)


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX signals")
class TestSigtermAsInterrupt:
    """Tests for SIGTERM handling."""

    def test_sigterm_raises_keyboard_interrupt(self) -> None:
        with pytest.raises(KeyboardInterrupt):
            with sigterm_as_interrupt():
                signal.raise_signal(signal.SIGTERM)

    def test_previous_handler_restored(self) -> None:
        before = signal.getsignal(signal.SIGTERM)

        with sigterm_as_interrupt():
            assert signal.getsignal(signal.SIGTERM) is not before

        assert signal.getsignal(signal.SIGTERM) is before
