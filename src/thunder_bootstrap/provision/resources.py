"""Create-or-adopt provisioners for Thunder resources.

Each helper POSTs the resource and, when the server answers that it already
exists, looks it up by its natural key and reuses the existing identifier.
Running the same provisioners twice against one server therefore succeeds
both times; the second run adopts everything the first one created.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any
from urllib.parse import quote, urlencode

from thunder_bootstrap.client import ApiResponse
from thunder_bootstrap.errors import ProvisionError
from thunder_bootstrap.provision.context import ProvisionContext

logger = logging.getLogger(__name__)

__all__ = [
    "ensure_application",
    "ensure_organization_unit",
    "ensure_resource",
    "ensure_role",
    "ensure_user",
    "ensure_user_schema",
    "is_conflict",
    "lookup_organization_unit",
]

CREATED_STATUSES = frozenset({200, 201})
CONFLICT_STATUS = 409


def is_conflict(response: ApiResponse, markers: tuple[str, ...]) -> bool:
    """Whether ``response`` means "the resource already exists".

    409 is the designed answer. Some endpoints report duplicates as a 400 with
    an error code or description instead; a 400 whose body contains one of
    ``markers`` is accepted as a conflict for compatibility with those.
    """
    if response.status_code == CONFLICT_STATUS:
        return True
    if response.status_code == 400:
        body = response.body.lower()
        return any(marker.lower() in body for marker in markers)
    return False


def _iter_items(data: Any) -> Iterator[dict[str, Any]]:
    """Yield resource objects from a list body, a wrapper object, or a single object."""
    if isinstance(data, list):
        yield from (item for item in data if isinstance(item, dict))
        return
    if not isinstance(data, dict):
        return
    wrapped = False
    for value in data.values():
        if isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
            wrapped = True
            yield from value
    if not wrapped and "id" in data:
        yield data


def _extract_id(response: ApiResponse, kind: str, key: str) -> str:
    data = response.json()
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    raise ProvisionError(
        f"Response for {kind} {key!r} has no 'id'",
        status_code=response.status_code,
        body=response.body,
    )


def ensure_resource(
    ctx: ProvisionContext,
    *,
    kind: str,
    key: str,
    create_path: str,
    payload: dict[str, Any],
    lookup_path: str,
    match: Callable[[dict[str, Any]], bool],
) -> str:
    """Create a resource, or adopt the existing one on conflict.

    Args:
        ctx: Run context; the resulting id is remembered as ``"<kind>:<key>"``.
        kind: Resource kind used for context keys and log messages.
        key: Natural key of the resource (handle, name, username).
        create_path: Collection path to POST to.
        payload: Creation payload.
        lookup_path: Path to GET when the resource already exists.
        match: Predicate selecting the resource among lookup results.

    Returns:
        Identifier of the created or adopted resource.

    Raises:
        ProvisionError: Server unreachable, unexpected status, or the existing
            resource could not be found.
    """
    context_key = f"{kind}:{key}"
    response = ctx.client.post(create_path, payload)

    if response.unreachable:
        raise ProvisionError(f"Server unreachable while creating {kind} {key!r}: {response.error}")

    if response.status_code in CREATED_STATUSES:
        resource_id = _extract_id(response, kind, key)
        ctx.remember(context_key, resource_id)
        ctx.created.append(context_key)
        logger.info(f"Created {kind} {key} ({resource_id})")
        return resource_id

    if not is_conflict(response, ctx.conflict_markers):
        raise ProvisionError(
            f"Failed to create {kind} {key!r}",
            status_code=response.status_code,
            body=response.body,
        )

    logger.info(f"{kind} {key} already exists, looking it up")
    lookup = ctx.client.get(lookup_path)
    if lookup.unreachable:
        raise ProvisionError(f"Server unreachable while looking up {kind} {key!r}: {lookup.error}")
    if not lookup.ok:
        raise ProvisionError(
            f"Failed to look up existing {kind} {key!r}",
            status_code=lookup.status_code,
            body=lookup.body,
        )

    for item in _iter_items(lookup.json()):
        if match(item) and item.get("id"):
            resource_id = str(item["id"])
            ctx.remember(context_key, resource_id)
            ctx.adopted.append(context_key)
            logger.info(f"Using existing {kind} {key} ({resource_id})")
            return resource_id

    raise ProvisionError(
        f"{kind.capitalize()} {key!r} reported as existing but not found",
        status_code=lookup.status_code,
        body=lookup.body,
    )


def ensure_organization_unit(
    ctx: ProvisionContext,
    handle: str,
    name: str,
    description: str = "",
    parent: str | None = None,
) -> str:
    """Create or adopt an organization unit identified by ``handle``."""
    payload: dict[str, Any] = {"handle": handle, "name": name, "description": description}
    if parent:
        payload["parent"] = parent
    return ensure_resource(
        ctx,
        kind="ou",
        key=handle,
        create_path="/organization-units",
        payload=payload,
        lookup_path=f"/organization-units/tree/{quote(handle, safe='')}",
        match=lambda item: item.get("handle") == handle,
    )


def lookup_organization_unit(ctx: ProvisionContext, handle: str) -> str:
    """Resolve an existing OU id, preferring the one remembered in ``ctx``.

    Used by steps that can run on their own (``--only``) and still need an OU
    an earlier step normally provides.
    """
    remembered = ctx.get(f"ou:{handle}")
    if remembered:
        return remembered

    response = ctx.client.get(f"/organization-units/tree/{quote(handle, safe='')}")
    if not response.ok:
        raise ProvisionError(
            f"Organization unit {handle!r} not found",
            status_code=response.status_code,
            body=response.body or (response.error or ""),
        )
    resource_id = _extract_id(response, "ou", handle)
    ctx.remember(f"ou:{handle}", resource_id)
    return resource_id


def ensure_user_schema(
    ctx: ProvisionContext,
    name: str,
    ou_id: str,
    schema: dict[str, Any],
) -> str:
    """Create or adopt a user schema (user type) by name."""
    return ensure_resource(
        ctx,
        kind="schema",
        key=name,
        create_path="/user-schemas",
        payload={"name": name, "ouId": ou_id, "schema": schema},
        lookup_path="/user-schemas",
        match=lambda item: item.get("name") == name,
    )


def ensure_user(
    ctx: ProvisionContext,
    username: str,
    ou_id: str,
    user_type: str,
    attributes: dict[str, Any],
) -> str:
    """Create or adopt a user by username."""
    query = urlencode({"filter": f'username eq "{username}"'})
    return ensure_resource(
        ctx,
        kind="user",
        key=username,
        create_path="/users",
        payload={
            "organizationUnit": ou_id,
            "type": user_type,
            "attributes": {"username": username, **attributes},
        },
        lookup_path=f"/users?{query}",
        match=lambda item: (item.get("attributes") or {}).get("username") == username,
    )


def ensure_role(
    ctx: ProvisionContext,
    name: str,
    ou_id: str,
    permissions: list[str],
    user_ids: Sequence[str] = (),
    description: str = "",
) -> str:
    """Create or adopt a role, assigning ``user_ids`` when it is created."""
    return ensure_resource(
        ctx,
        kind="role",
        key=name,
        create_path="/roles",
        payload={
            "name": name,
            "description": description,
            "ouId": ou_id,
            "permissions": list(permissions),
            "assignments": [{"id": user_id, "type": "user"} for user_id in user_ids],
        },
        lookup_path="/roles",
        match=lambda item: item.get("name") == name,
    )


def ensure_application(
    ctx: ProvisionContext,
    name: str,
    payload: dict[str, Any],
) -> str:
    """Create or adopt an application by name."""
    return ensure_resource(
        ctx,
        kind="application",
        key=name,
        create_path="/applications",
        payload={"name": name, **payload},
        lookup_path="/applications",
        match=lambda item: item.get("name") == name,
    )
