"""Event emitters: sinks that collect events until a producer polls them."""

import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from headless.event import Event

DEFAULT_BUFFER_SIZE = 1024


@runtime_checkable
class Producer(Protocol):
    """Source of events that can be polled and closed."""

    def poll_events(self) -> list[Event]: ...

    def close(self, timeout: float | None = None) -> None: ...


@runtime_checkable
class Emitter(Producer, Protocol):
    """Producer that also accepts pushed events."""

    def push(self, event: Event) -> None: ...


class NoopEmitter:
    """Emitter that keeps no events; every pushed event is dropped.

    A dropped event is handed to ``drop_callback`` if one is given.
    """

    def __init__(self, drop_callback: Callable[[Event], None] | None = None) -> None:
        self._drop_callback = drop_callback
        self.closed = False

    def push(self, event: Event) -> None:
        if self._drop_callback is not None:
            self._drop_callback(event)

    def poll_events(self) -> list[Event]:
        return []

    def close(self, timeout: float | None = None) -> None:
        self.closed = True


class BufferedEmitter:
    """Thread-safe emitter holding up to ``buffer_size`` events between polls.

    Events pushed while the buffer is full, or after the emitter was closed,
    are dropped and handed to ``drop_callback`` if one is given.
    """

    def __init__(
        self,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        drop_callback: Callable[[Event], None] | None = None,
    ) -> None:
        self.buffer_size = buffer_size if buffer_size > 0 else DEFAULT_BUFFER_SIZE
        self._drop_callback = drop_callback
        self._lock = threading.Lock()
        self._buffer: list[Event] = []
        self._closed = False

    def push(self, event: Event) -> None:
        """Add ``event``, dropping it if the emitter is closed or full."""
        with self._lock:
            accepted = not self._closed and len(self._buffer) < self.buffer_size
            if accepted:
                self._buffer.append(event)
        if not accepted and self._drop_callback is not None:
            self._drop_callback(event)

    def poll_events(self) -> list[Event]:
        """Return the buffered events in push order and empty the buffer."""
        with self._lock:
            events, self._buffer = self._buffer, []
        return events

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting events; buffered ones stay available to :meth:`poll_events`.

        Closing never blocks, so ``timeout`` is never reached.
        """
        with self._lock:
            self._closed = True