"""Thunder server process control: start, readiness polling, guaranteed teardown."""

from thunder_bootstrap.server.lifecycle import ServerHandle, ServerLifecycle, ServerState
from thunder_bootstrap.server.ports import release_port

__all__ = [
    "ServerHandle",
    "ServerLifecycle",
    "ServerState",
    "release_port",
]
