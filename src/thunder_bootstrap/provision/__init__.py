"""Idempotent resource provisioning against the Thunder API."""

from thunder_bootstrap.provision.context import ProvisionContext
from thunder_bootstrap.provision.resources import (
    ensure_application,
    ensure_organization_unit,
    ensure_resource,
    ensure_role,
    ensure_user,
    ensure_user_schema,
    is_conflict,
    lookup_organization_unit,
)

__all__ = [
    "ProvisionContext",
    "ensure_application",
    "ensure_organization_unit",
    "ensure_resource",
    "ensure_role",
    "ensure_user",
    "ensure_user_schema",
    "is_conflict",
    "lookup_organization_unit",
]
