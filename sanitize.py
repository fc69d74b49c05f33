"""Strips MongoDB operator injection from free-form client data."""
from typing import Any


def is_unsafe_key(key: Any) -> bool:
    return isinstance(key, str) and (key.startswith("$") or "." in key)


def sanitize(value: Any) -> Any:
    # keys starting with $ or holding a dot never reach a query or update
    if isinstance(value, dict):
        return {k: sanitize(v) for k, v in value.items() if not is_unsafe_key(k)}
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    return value
