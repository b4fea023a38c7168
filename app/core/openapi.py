"""OpenAPI customizations.

Adds tag descriptions and an ``X-API-Key`` security scheme that applies only
to the admin endpoints; auth and health endpoints stay public.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Auth", "description": "Sign-up, sign-in and confirmation (rate limited)."},
    {"name": "Admin", "description": "Rate limiter statistics and maintenance."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {})["AdminApiKey"] = {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-Key",
            "description": "Admin API key (APP_ADMIN_API_KEYS).",
        }

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            if "/admin/" not in path:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"AdminApiKey": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
