"""Sample resources for local development: a customers OU and a sample OAuth app."""

from __future__ import annotations

from thunder_bootstrap.provision import (
    ProvisionContext,
    ensure_application,
    ensure_organization_unit,
    lookup_organization_unit,
)

SAMPLE_APP_CLIENT_ID = "sample_app_client"


def provision(ctx: ProvisionContext) -> None:
    default_ou = lookup_organization_unit(ctx, "default")

    ensure_organization_unit(
        ctx,
        handle="customers",
        name="Customers",
        description="Sample customer organization unit",
        parent=default_ou,
    )

    ensure_application(
        ctx,
        name="Sample App",
        payload={
            "description": "Sample application for local development",
            "url": "https://localhost:3000",
            "inbound_auth_config": [
                {
                    "type": "oauth2",
                    "config": {
                        "client_id": SAMPLE_APP_CLIENT_ID,
                        "redirect_uris": ["https://localhost:3000"],
                        "grant_types": ["authorization_code", "refresh_token"],
                        "response_types": ["code"],
                        "token_endpoint_auth_method": "client_secret_basic",
                        "pkce_required": True,
                        "public_client": False,
                    },
                }
            ],
        },
    )
