"""Well-known context keys and a typed lookup helper.

A context is any mapping that carries request- or service-scoped values,
keyed by :class:`ContextKey` members or their plain string values.
"""

from collections.abc import Mapping
from enum import StrEnum
from typing import Any


class ContextKey(StrEnum):
    """Keys under which common values are stored in a context mapping."""

    SERVICE = "service"
    CLIENT_VERSION = "client_version"
    DEVICE_ID = "device_id"


def get_string_value(ctx: Mapping[Any, Any] | None, key: str) -> str:
    """Return the string stored under ``key``, or ``""`` if absent or not a string."""
    if ctx is None:
        return ""
    value = ctx.get(key)
    return value if isinstance(value, str) else ""