"""Service that keeps a remote configuration up to date in the background."""

import json
import os
import threading
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping
from typing import Any

from headless.config import Config
from headless.config_storage import InMemoryStorage, Storage
from headless.context import ContextKey
from headless.logger import Logger, new_logger

SERVICE_NAME = "ConfigService"
DEFAULT_INITIAL_POLL_DELAY = 60.0
DEFAULT_POLL_INTERVAL = 3600.0
DEFAULT_TIMEOUT = 5.0


class ConfigService:
    """Fetches a JSON configuration from ``url`` and refreshes it periodically.

    Intervals are given in seconds. The configuration is kept in ``storage``;
    when the storage is empty at start-up it is loaded from the remote at once.
    """

    def __init__(
        self,
        url: str,
        ctx: Mapping[Any, Any] | None = None,
        *,
        extend_with_env_vars: bool = False,
        env_key_prefix: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        initial_poll_delay: float = DEFAULT_INITIAL_POLL_DELAY,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        storage: Storage | None = None,
        logger_factory: Callable[[Mapping[Any, Any] | None], Logger] | None = None,
    ) -> None:
        if env_key_prefix is not None and env_key_prefix == "":
            raise ValueError("env key prefix cannot be empty")
        if poll_interval <= 0:
            raise ValueError("poll interval must be greater than 0")
        if initial_poll_delay < 0:
            raise ValueError("initial poll delay cannot be negative")

        self.url = url
        self.extend_with_env_vars = extend_with_env_vars
        self.env_key_prefix = env_key_prefix or ""
        self.poll_interval = poll_interval
        self.initial_poll_delay = initial_poll_delay
        self._opener = opener if opener is not None else urllib.request.build_opener()
        self._timeout = timeout
        self._storage: Storage = storage if storage is not None else InMemoryStorage()

        inner_ctx = {**(ctx or {}), ContextKey.SERVICE: SERVICE_NAME}
        self._logger = new_logger(inner_ctx, logger_factory)

        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._close_lock = threading.Lock()

        try:
            self._current: Config | None = self._storage.get()
        except Exception as exc:
            raise RuntimeError(f"failed to load initial config: {exc}") from exc

        if self._current is None:
            try:
                self.refresh()
            except Exception as exc:
                self._logger.error("failed to load initial config from remote", "error", exc)

        self._thread = threading.Thread(target=self._run, name=SERVICE_NAME, daemon=True)
        self._thread.start()
        self._logger.info("started service successfully", "pollInterval", self.poll_interval)

    def _run(self) -> None:
        if self.initial_poll_delay > 0:
            self._logger.info(
                "waiting for initial poll delay before starting service",
                "initialPollDelay",
                self.initial_poll_delay,
            )
            if self._stop.wait(self.initial_poll_delay):
                self._logger.warn("stopped service because it was closed")
                return
            self._logger.info("initial poll delay completed, starting service")

        while not self._stop.wait(self.poll_interval):
            try:
                self.refresh()
            except Exception as exc:
                self._logger.error("failed to refresh config", "error", exc)
        self._logger.warn("stopped service because it was closed")

    def name(self) -> str:
        """Return the service name."""
        return SERVICE_NAME

    def close(self) -> None:
        """Stop background polling and wait for it to finish."""
        with self._close_lock:
            self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "ConfigService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def current(self) -> Config | None:
        """Return a copy of the current configuration, or ``None`` if none is loaded."""
        with self._lock:
            if self._current is None:
                return None
            return Config(self._current.version, dict(self._current.properties))

    def refresh(self) -> None:
        """Fetch the remote configuration and store it if it changed."""
        new_config = self._fetch_from_remote()

        if self.extend_with_env_vars:
            self._logger.debug("extending config with environment variables")
            new_config = self._extend_with_environment(new_config)

        with self._lock:
            current = self._current
            if current is not None and new_config.version == current.version:
                self._logger.info("config version is up to date", "version", new_config.version)
                return
            if current is not None and new_config.properties == current.properties:
                self._logger.info("config properties have not changed")
                return
            try:
                self._storage.save(new_config)
            except Exception as exc:
                raise RuntimeError(f"failed to store config: {exc}") from exc
            self._current = new_config

    def _fetch_from_remote(self) -> Config:
        request = urllib.request.Request(self.url, method="GET")
        try:
            with self._opener.open(request, timeout=self._timeout) as response:
                status = response.status
                body = response.read()
        except urllib.error.HTTPError as exc:
            exc.close()
            raise RuntimeError(f"failed to fetch config: unexpected status code: {exc.code}") from exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"failed to fetch config: {exc}") from exc

        if status != 200:
            raise RuntimeError(f"failed to fetch config: unexpected status code: {status}")

        try:
            return Config.from_dict(json.loads(body))
        except ValueError as exc:
            raise RuntimeError(f"failed to fetch config: invalid config JSON: {exc}") from exc

    def _extend_with_environment(self, base: Config) -> Config:
        properties = dict(base.properties)
        prefix = self.env_key_prefix
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue
            config_key = env_key[len(prefix):].lower()
            if config_key in properties:
                self._logger.debug("environment variable already applied", "key", config_key, "value", env_key)
                continue
            properties[config_key] = env_value
            self._logger.debug("applied environment variable override", "key", config_key, "value", env_key)
        return Config(base.version, properties)