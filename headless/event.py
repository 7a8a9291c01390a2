"""Events describing what a client did, sent to a backend in batches."""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from headless.context import ContextKey, get_string_value


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Event:
    """A single client event."""

    id: str = field(default_factory=_new_id)
    device_id: str = ""
    client_version: str = ""
    timestamp: datetime = field(default_factory=_now)
    source: str = ""
    type: str = ""
    message: str = ""
    data: dict[str, Any] | None = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of the event; ``data`` is left out when empty."""
        result: dict[str, Any] = {
            "id": self.id,
            "deviceId": self.device_id,
            "clientVersion": self.client_version,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "type": str(self.type),
            "message": self.message,
        }
        if self.data:
            result["data"] = dict(self.data)
        result["isError"] = self.is_error
        return result


def new_event(
    ctx: Mapping[Any, Any] | None,
    event_type: str,
    *,
    message: str | None = None,
    data: Mapping[str, Any] | None = None,
    error: BaseException | None = None,
) -> Event:
    """Create an event stamped with a fresh id, the current time and the context's device and version.

    An ``error`` marks the event as an error and uses its text as the message;
    an explicit ``message`` takes precedence over it.
    """
    event = Event(
        type=event_type,
        device_id=get_string_value(ctx, ContextKey.DEVICE_ID),
        client_version=get_string_value(ctx, ContextKey.CLIENT_VERSION),
    )
    if error is not None:
        event.is_error = True
        event.message = str(error)
    if message is not None:
        event.message = message
    if data is not None:
        event.data = dict(data)
    return event


def new_event_from_error(
    ctx: Mapping[Any, Any] | None,
    event_type: str,
    error: BaseException,
    *,
    message: str | None = None,
    data: Mapping[str, Any] | None = None,
) -> Event:
    """Create an error event from ``error``."""
    return new_event(ctx, event_type, message=message, data=data, error=error)