"""Run-scoped state shared by the provisioner steps of one bootstrap run."""

from __future__ import annotations

from dataclasses import dataclass, field

from thunder_bootstrap.client import ApiClient
from thunder_bootstrap.errors import ProvisionError

# Thunder reports some duplicate handles and names as 400 "... conflict" errors
DEFAULT_CONFLICT_MARKERS: tuple[str, ...] = ("already exists", "conflict")


@dataclass
class ProvisionContext:
    """Identifiers and counters threaded through every provisioner step.

    Keys in ``ids`` are ``"<kind>:<natural key>"``, e.g. ``"ou:default"`` or
    ``"user:admin"``. Later steps read what earlier steps remembered instead of
    looking the resource up again.

    Attributes:
        client: API client bound to the server under bootstrap
        conflict_markers: Body substrings that mark a 400 as "already exists"
        ids: Resource identifiers collected so far
        created: Keys of resources created by this run
        adopted: Keys of resources that already existed and were reused
    """

    client: ApiClient
    conflict_markers: tuple[str, ...] = DEFAULT_CONFLICT_MARKERS
    ids: dict[str, str] = field(default_factory=dict)
    created: list[str] = field(default_factory=list)
    adopted: list[str] = field(default_factory=list)

    def remember(self, key: str, resource_id: str) -> None:
        self.ids[key] = resource_id

    def get(self, key: str) -> str | None:
        return self.ids.get(key)

    def require(self, key: str) -> str:
        """Return a remembered identifier or fail the step."""
        try:
            return self.ids[key]
        except KeyError:
            raise ProvisionError(
                f"No identifier for {key!r}; the step that provisions it has not run"
            ) from None
