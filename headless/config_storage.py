"""Places where the current configuration is kept between refreshes."""

import json
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from headless.config import Config


@runtime_checkable
class Storage(Protocol):
    """Keeps the most recent configuration."""

    def get(self) -> Config | None: ...

    def save(self, config: Config | None) -> None: ...


class InMemoryStorage:
    """Storage holding the configuration object in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._config: Config | None = None

    def get(self) -> Config | None:
        """Return the stored configuration, or ``None`` if nothing is stored."""
        with self._lock:
            return self._config

    def save(self, config: Config | None) -> None:
        """Store ``config``, replacing what was there."""
        with self._lock:
            self._config = config


class FileStorage:
    """Storage keeping the configuration as a JSON file, written atomically."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self._lock = threading.Lock()

    def get(self) -> Config | None:
        """Read the configuration file; ``None`` if it does not exist."""
        with self._lock:
            try:
                raw = Path(self.path).read_bytes()
            except FileNotFoundError:
                return None
        return Config.from_dict(json.loads(raw))

    def set(self, config: Config | None) -> None:
        """Write ``config`` to a temporary file and move it over the target."""
        payload = json.dumps(None if config is None else config.to_dict()).encode("utf-8")
        tmp_path = self.path + ".tmp"
        with self._lock:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)

    def save(self, config: Config | None) -> None:
        """Same as :meth:`set`."""
        self.set(config)