"""Default resources every Thunder deployment needs.

Creates the ``default`` organization unit, the ``person`` user schema, the
``admin`` user and the ``Administrator`` role assigned to that user.
"""

from __future__ import annotations

import os

from thunder_bootstrap.provision import (
    ProvisionContext,
    ensure_organization_unit,
    ensure_role,
    ensure_user,
    ensure_user_schema,
)

PERSON_SCHEMA = {
    "username": {"type": "string", "required": True, "unique": True},
    "password": {"type": "string", "required": True, "credential": True},
    "email": {"type": "string", "unique": True},
    "given_name": {"type": "string"},
    "family_name": {"type": "string"},
}


def provision(ctx: ProvisionContext) -> None:
    ou_id = ensure_organization_unit(
        ctx,
        handle="default",
        name="Default",
        description="Default organization unit",
    )
    ensure_user_schema(ctx, name="person", ou_id=ou_id, schema=PERSON_SCHEMA)

    admin_id = ensure_user(
        ctx,
        username="admin",
        ou_id=ou_id,
        user_type="person",
        attributes={
            "password": os.environ.get("THUNDER_ADMIN_PASSWORD", "admin"),
            "email": "admin@thunder.dev",
            "given_name": "Administrator",
        },
    )
    ensure_role(
        ctx,
        name="Administrator",
        ou_id=ou_id,
        permissions=["system"],
        user_ids=[admin_id],
        description="System administrator",
    )
