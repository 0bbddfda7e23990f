"""Free a TCP port by killing whatever is listening on it.

A stale server from an earlier run would otherwise answer the readiness check
in place of the one just launched. The listener lookup is OS specific, so each
platform gets its own backend behind :func:`release_port`.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys

logger = logging.getLogger(__name__)

__all__ = ["release_port"]


class _PosixBackend:
    """``lsof`` based listener lookup, SIGKILL to terminate."""

    def listeners(self, port: int) -> list[int]:
        result = subprocess.run(
            ["lsof", "-t", f"-iTCP:{port}", "-sTCP:LISTEN"],
            capture_output=True,
            text=True,
            check=False,
        )
        return sorted({int(line) for line in result.stdout.split() if line.strip().isdigit()})

    def kill(self, pid: int) -> None:
        os.kill(pid, signal.SIGKILL)


class _WindowsBackend:
    """``netstat`` based listener lookup, ``taskkill`` to terminate."""

    def listeners(self, port: int) -> list[int]:
        result = subprocess.run(
            ["netstat", "-ano", "-p", "tcp"],
            capture_output=True,
            text=True,
            check=False,
        )
        pids: set[int] = set()
        for line in result.stdout.splitlines():
            parts = line.split()
            # Proto  Local Address  Foreign Address  State  PID
            if len(parts) < 5 or parts[3].upper() != "LISTENING":
                continue
            if parts[1].rsplit(":", 1)[-1] == str(port) and parts[4].isdigit():
                pids.add(int(parts[4]))
        return sorted(pids)

    def kill(self, pid: int) -> None:
        subprocess.run(["taskkill", "/F", "/PID", str(pid)], capture_output=True, check=False)


def _backend_for(platform: str) -> _PosixBackend | _WindowsBackend:
    if platform.startswith("win"):
        return _WindowsBackend()
    return _PosixBackend()


def release_port(port: int, platform: str | None = None) -> list[int]:
    """Kill every process listening on ``port``.

    Args:
        port: TCP port to free.
        platform: ``sys.platform`` value selecting the backend (default: current).

    Returns:
        PIDs that were signalled. Empty if nothing was listening or the lookup
        tool is unavailable.
    """
    backend = _backend_for(platform or sys.platform)
    try:
        pids = backend.listeners(port)
    except FileNotFoundError as e:
        logger.warning(f"Cannot check port {port}: {e.filename} not found")
        return []

    own_pid = os.getpid()
    killed = []
    for pid in pids:
        if pid == own_pid:
            continue
        logger.info(f"Killing process {pid} listening on port {port}")
        try:
            backend.kill(pid)
        except OSError as e:
            logger.warning(f"Failed to kill process {pid}: {e}")
            continue
        killed.append(pid)
    return killed
