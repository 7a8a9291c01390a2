"""Service that periodically sends events collected from producers to a backend."""

import json
import threading
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from headless.context import ContextKey
from headless.emitter import Producer
from headless.event import Event
from headless.logger import Logger, new_logger

SERVICE_NAME = "EventService"
DEFAULT_FLUSH_INTERVAL = 60.0
DEFAULT_TIMEOUT = 5.0

RequestBuilder = Callable[[Sequence[Event]], urllib.request.Request]


def _default_request_builder(endpoint: str) -> RequestBuilder:
    def build(events: Sequence[Event]) -> urllib.request.Request:
        payload = json.dumps([event.to_dict() for event in events]).encode("utf-8")
        return urllib.request.Request(
            endpoint,
            data=payload,
            method="POST",
            headers={"Content-Type": "application/json"},
        )

    return build


class EventService:
    """Collects events from registered producers and posts them to ``endpoint``.

    A background thread flushes every ``flush_interval`` seconds. The request
    carrying a batch is made by ``request_builder``; by default it is a POST of
    the events as a JSON array.
    """

    def __init__(
        self,
        endpoint: str,
        ctx: Mapping[Any, Any] | None = None,
        *,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        request_builder: RequestBuilder | None = None,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        logger_factory: Callable[[Mapping[Any, Any] | None], Logger] | None = None,
    ) -> None:
        if flush_interval <= 0:
            raise ValueError("failed to apply option WithFlushInterval: flush interval must be greater than 0")

        self.endpoint = endpoint
        self.flush_interval = flush_interval
        self._request_builder = request_builder or _default_request_builder(endpoint)
        self._opener = opener if opener is not None else urllib.request.build_opener()
        self._timeout = timeout

        inner_ctx = {**(ctx or {}), ContextKey.SERVICE: SERVICE_NAME}
        self._logger = new_logger(inner_ctx, logger_factory)

        self._lock = threading.Lock()
        self._producers: list[Producer] = []
        self._stop = threading.Event()

        self._thread = threading.Thread(target=self._run, name=SERVICE_NAME, daemon=True)
        self._thread.start()
        self._logger.info("started service successfully", "pushInterval", self.flush_interval)

    def _run(self) -> None:
        while not self._stop.wait(self.flush_interval):
            try:
                self.flush()
            except Exception as exc:
                self._logger.error("failed to flush events", "error", exc)

    def register_producer(self, producer: Producer) -> None:
        """Add a producer whose events are included in every flush."""
        with self._lock:
            self._producers.append(producer)

    def flush(self) -> None:
        """Poll every producer and send the collected events in one request."""
        with self._lock:
            producers = list(self._producers)

        batch = [event for producer in producers for event in producer.poll_events()]
        if not batch:
            return

        try:
            request = self._request_builder(batch)
        except Exception as exc:
            raise RuntimeError(f"failed to build request: {exc}") from exc

        try:
            with self._opener.open(request, timeout=self._timeout) as response:
                status, reason = response.status, response.reason
        except urllib.error.HTTPError as exc:
            exc.close()
            raise RuntimeError(f"received non-2xx response: {exc.code} {exc.reason}") from exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"failed to send request: {exc}") from exc

        if not 200 <= status < 300:
            raise RuntimeError(f"received non-2xx response: {status} {reason}")

    def name(self) -> str:
        """Return the service name."""
        return SERVICE_NAME

    def close(self) -> None:
        """Stop flushing, close every producer and wait for the background thread."""
        self._stop.set()

        with self._lock:
            producers = list(self._producers)

        for producer in producers:
            try:
                producer.close()
            except Exception as exc:
                self._logger.error("failed to close event producer", "error", exc)

        if self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "EventService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()