"""OpenAPI customization.

Documents the identity header every command route expects as a header
"security" scheme, so generated clients send it, and adds tag metadata.
Identities are trusted as supplied; the scheme is descriptive only.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from kagi_relay.core.config import settings


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add the identity scheme and tags.

    - Injects components.securitySchemes for the identity header
    - Requires it on /v1/commands operations only
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ChatUserIdentity",
            {
                "type": "apiKey",
                "in": "header",
                "name": settings.app.identity_header,
                "description": "Chat platform user id of the person invoking the command.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Commands",
                "description": "Quota-gated Kagi commands rendered as chat replies.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/v1/commands"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"ChatUserIdentity": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
