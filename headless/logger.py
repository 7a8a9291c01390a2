"""Structured logging interface with a no-op and a standard-library implementation."""

import json
import logging
import sys
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from itertools import chain
from typing import Any, Protocol, runtime_checkable

from headless.context import ContextKey, get_string_value

_BAD_KEY = "!BADKEY"
_MISSING = object()
_DEFAULT_LOGGER_NAME = "headless"
_setup_lock = threading.Lock()


def _discarding_logger() -> logging.Logger:
    log = logging.Logger(f"{_DEFAULT_LOGGER_NAME}.noop", level=logging.CRITICAL + 1)
    log.addHandler(logging.NullHandler())
    log.propagate = False
    log.disabled = True
    return log


_NULL_LOGGER = _discarding_logger()


@runtime_checkable
class Logger(Protocol):
    """Leveled logger taking a message followed by alternating keys and values."""

    def debug(self, msg: str, *args: Any) -> None: ...

    def info(self, msg: str, *args: Any) -> None: ...

    def warn(self, msg: str, *args: Any) -> None: ...

    def error(self, msg: str, *args: Any) -> None: ...


class NoOpLogger:
    """Logger that discards everything."""

    def __init__(self) -> None:
        self._logger = _NULL_LOGGER

    def debug(self, msg: str, *args: Any) -> None:
        self._logger.debug(msg)

    def info(self, msg: str, *args: Any) -> None:
        self._logger.info(msg)

    def warn(self, msg: str, *args: Any) -> None:
        self._logger.warning(msg)

    def error(self, msg: str, *args: Any) -> None:
        self._logger.error(msg)


def _pairs(args: Iterable[Any]) -> Iterator[tuple[str, Any]]:
    it = iter(args)
    for item in it:
        if isinstance(item, str):
            value = next(it, _MISSING)
            if value is _MISSING:
                yield _BAD_KEY, item
            else:
                yield item, value
        else:
            yield _BAD_KEY, item


def _format_value(value: Any) -> str:
    text = str(value)
    if text == "" or any(ch.isspace() or ch in '"=' for ch in text):
        return json.dumps(text, ensure_ascii=False)
    return text


class StdLogger:
    """Logger writing ``msg key=value ...`` lines through :mod:`logging`."""

    def __init__(
        self,
        attrs: Mapping[str, Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.attrs = dict(attrs or {})
        self._logger = logger if logger is not None else logging.getLogger(_DEFAULT_LOGGER_NAME)

    def _log(self, level: int, msg: str, args: tuple[Any, ...]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = (
            f"{key}={_format_value(value)}"
            for key, value in chain(self.attrs.items(), _pairs(args))
        )
        self._logger.log(level, " ".join([msg, *fields]))

    def debug(self, msg: str, *args: Any) -> None:
        self._log(logging.DEBUG, msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(logging.INFO, msg, args)

    def warn(self, msg: str, *args: Any) -> None:
        self._log(logging.WARNING, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(logging.ERROR, msg, args)


def _stdout_logger() -> logging.Logger:
    log = logging.getLogger(_DEFAULT_LOGGER_NAME)
    with _setup_lock:
        if not log.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter("time=%(asctime)s level=%(levelname)s %(message)s"))
            log.addHandler(handler)
            log.setLevel(logging.DEBUG)
            log.propagate = False
    return log


def new_logger(
    ctx: Mapping[Any, Any] | None,
    factory: Callable[[Mapping[Any, Any] | None], Logger] | None,
) -> Logger:
    """Build a logger from ``factory``, or a :class:`NoOpLogger` when none is given."""
    if factory is None:
        return NoOpLogger()
    return factory(ctx)


def std_logger_factory(ctx: Mapping[Any, Any] | None) -> StdLogger:
    """Logger to stdout at debug level, tagged with the context's service, device and version."""
    attrs = {}
    for key in (ContextKey.SERVICE, ContextKey.DEVICE_ID, ContextKey.CLIENT_VERSION):
        value = get_string_value(ctx, key)
        if value:
            attrs[key.value] = value
    return StdLogger(attrs, _stdout_logger())