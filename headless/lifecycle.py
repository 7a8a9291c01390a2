"""Ordered shutdown of registered services."""

import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from headless.context import ContextKey
from headless.logger import Logger, new_logger

SERVICE_NAME = "Lifecycle"


@runtime_checkable
class Closer(Protocol):
    """Something with a name that can be shut down."""

    def name(self) -> str: ...

    def close(self) -> None: ...


class CloseError(Exception):
    """Raised when one or more closers failed; ``errors`` holds ``(name, exception)`` pairs."""

    def __init__(self, errors: Iterable[tuple[str, BaseException]]) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(f"failed to close {name}: {err}" for name, err in self.errors))


class LifecycleService:
    """Closes registered services in reverse order of registration."""

    def __init__(
        self,
        ctx: Mapping[Any, Any] | None = None,
        *,
        logger_factory: Callable[[Mapping[Any, Any] | None], Logger] | None = None,
    ) -> None:
        inner_ctx = {**(ctx or {}), ContextKey.SERVICE: SERVICE_NAME}
        self._logger = new_logger(inner_ctx, logger_factory)
        self._lock = threading.Lock()
        self._closers: list[Closer] = []

    def register(self, closer: Closer) -> None:
        """Add ``closer``; it will be closed before anything registered earlier."""
        with self._lock:
            self._closers.insert(0, closer)
        self._logger.info("successfully registered closer", "name", closer.name())

    def close_all(self) -> None:
        """Close every registered closer, raising :class:`CloseError` if any failed."""
        failures: list[tuple[str, BaseException]] = []
        with self._lock:
            for closer in self._closers:
                try:
                    closer.close()
                except Exception as exc:
                    failures.append((closer.name(), exc))

        if failures:
            error = CloseError(failures)
            self._logger.error("failed to close all closers", "error", error)
            raise error

        self._logger.info("successfully closed all closers")

    def __enter__(self) -> "LifecycleService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close_all()