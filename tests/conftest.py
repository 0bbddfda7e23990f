"""Shared fixtures: an in-memory Thunder API served through httpx.MockTransport."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from thunder_bootstrap.client import ApiClient
from thunder_bootstrap.provision.context import ProvisionContext

BASE_URL = "https://thunder.test"

# Natural key and list-wrapper field per collection
COLLECTIONS: dict[str, tuple[Callable[[dict[str, Any]], str], str]] = {
    "organization-units": (lambda p: p["handle"], "organizationUnits"),
    "user-schemas": (lambda p: p["name"], "schemas"),
    "users": (lambda p: p["attributes"]["username"], "users"),
    "roles": (lambda p: p["name"], "roles"),
    "applications": (lambda p: p["name"], "applications"),
}

USERNAME_FILTER = re.compile(r'username eq "([^"]*)"')


class FakeThunder:
    """Minimal stand-in for the Thunder management API.

    Attributes:
        resources: Stored resources per collection
        requests: (method, path) of every request received
        ready: Whether /health/readiness answers 200
        conflict_status: 409, or 400 to answer duplicates the inconsistent way
        duplicate_message: Description template for 400 duplicates, formatted with ``key``
        fail_paths: Path -> status forced for POSTs to that path
    """

    def __init__(self) -> None:
        self.resources: dict[str, list[dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        self.requests: list[tuple[str, str]] = []
        self.ready = True
        self.conflict_status = 409
        self.duplicate_message = "Resource {key} already exists"
        self.fail_paths: dict[str, int] = {}
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if path == "/health/readiness":
            return httpx.Response(200 if self.ready else 503, text="ready" if self.ready else "")

        parts = path.strip("/").split("/")
        collection = parts[0]
        if collection not in COLLECTIONS:
            return httpx.Response(404, json={"code": "NOT_FOUND"})
        natural_key, list_field = COLLECTIONS[collection]
        items = self.resources[collection]

        if request.method == "POST":
            if path in self.fail_paths:
                return httpx.Response(self.fail_paths[path], json={"code": "SERVER_ERROR"})
            payload = json.loads(request.content)
            key = natural_key(payload)
            if any(natural_key(item) == key for item in items):
                if self.conflict_status == 409:
                    return httpx.Response(409, json={"code": "CONFLICT", "message": "Conflict"})
                return httpx.Response(
                    400,
                    json={"code": "DUP-1001", "description": self.duplicate_message.format(key=key)},
                )
            self._counter += 1
            item = {"id": f"{collection}-{self._counter}", **payload}
            items.append(item)
            return httpx.Response(201, json=item)

        if request.method == "GET":
            if collection == "organization-units" and len(parts) == 3 and parts[1] == "tree":
                for item in items:
                    if item["handle"] == parts[2]:
                        return httpx.Response(200, json=item)
                return httpx.Response(404, json={"code": "OU-1003"})

            selected = items
            user_filter = request.url.params.get("filter")
            if collection == "users" and user_filter:
                match = USERNAME_FILTER.search(user_filter)
                wanted = match.group(1) if match else None
                selected = [i for i in items if i["attributes"]["username"] == wanted]
            return httpx.Response(200, json={"totalResults": len(selected), list_field: selected})

        return httpx.Response(405)

    def count(self, collection: str) -> int:
        return len(self.resources[collection])


@pytest.fixture
def fake_thunder() -> FakeThunder:
    """Create an empty fake Thunder server."""
    return FakeThunder()


@pytest.fixture
def transport(fake_thunder: FakeThunder) -> httpx.MockTransport:
    """Transport routing requests to the fake server."""
    return httpx.MockTransport(fake_thunder.handler)


@pytest.fixture
def api_client(transport: httpx.MockTransport) -> Iterator[ApiClient]:
    """API client bound to the fake server."""
    client = ApiClient(base_url=BASE_URL, transport=transport)
    yield client
    client.close()


@pytest.fixture
def provision_context(api_client: ApiClient) -> ProvisionContext:
    """Fresh run context bound to the fake server."""
    return ProvisionContext(client=api_client)


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    """Empty directory for bootstrap steps."""
    directory = tmp_path / "bootstrap"
    directory.mkdir()
    return directory


@pytest.fixture
def write_step(scripts_dir: Path) -> Callable[..., Path]:
    """Write a Python bootstrap step; ``body`` is the body of provision(ctx)."""

    def _write(name: str, body: str = "pass", directory: Path | None = None) -> Path:
        target = (directory or scripts_dir) / name
        lines = "\n".join(f"    {line}" for line in body.splitlines())
        target.write_text(
            "from pathlib import Path\n\n\n"
            "def provision(ctx):\n"
            "    with Path(__file__).parent.parent.joinpath('order.log').open('a') as log:\n"
            f"        log.write({name!r} + '\\n')\n"
            f"{lines}\n"
        )
        return target

    return _write


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove settings variables the developer's shell may have set."""
    for key in list(os.environ):
        if key.startswith(("THUNDER_", "BOOTSTRAP_")):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def executed_order(scripts_dir: Path) -> Callable[[], list[str]]:
    """Names of the Python steps that ran, in execution order."""

    def _read() -> list[str]:
        log = scripts_dir.parent / "order.log"
        if not log.exists():
            return []
        return log.read_text().split()

    return _read
