from __future__ import annotations

from typing import Any

SECRET_KEYS = frozenset({"password", "refresh_token", "access_token", "apikey", "api_key", "token"})
MASK = "***"


def mask_secrets(payload: Any) -> Any:
    """Copy of ``payload`` with credential values replaced by ***."""
    if isinstance(payload, dict):
        return {
            key: MASK if key in SECRET_KEYS and value else mask_secrets(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [mask_secrets(item) for item in payload]
    return payload
