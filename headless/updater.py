"""Self-updating service: polls a manifest and swaps in new releases of the running binary."""

import contextlib
import hashlib
import os
import shutil
import sys
import tempfile
import threading
from collections import deque
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any

from headless.context import ContextKey, get_string_value
from headless.emitter import Emitter, NoopEmitter
from headless.event import Event, new_event
from headless.logger import Logger, new_logger
from headless.manifest import HttpManifestRequester, Manifest, ManifestRequester
from headless.update_requester import HttpUpdateRequester, UpdateRequester

SERVICE_NAME = "UpdateService"
DEFAULT_INITIAL_POLL_DELAY = 60.0
DEFAULT_POLL_INTERVAL = 3600.0
_COPY_BUFFER = 64 * 1024

UpdateCallback = Callable[[Manifest], None]


class UpdateEventType(StrEnum):
    """Types of the events an :class:`Updater` emits."""

    UPDATE_AVAILABLE = "update_available"
    NO_UPDATE_AVAILABLE = "no_update_available"
    UPDATE_STARTED = "update_started"
    UPDATE_DOWNLOAD_STARTED = "update_download_started"
    UPDATE_DOWNLOADED = "update_downloaded"
    UPDATE_APPLIED = "update_applied"


class _Mailbox:
    """Bounded hand-over of manifests to listeners; ``get`` returns ``None`` once closed."""

    def __init__(self, capacity: int = 1) -> None:
        self._capacity = capacity
        self._items: deque[Manifest] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def put(self, item: Manifest) -> None:
        with self._cond:
            while len(self._items) >= self._capacity and not self._closed:
                self._cond.wait()
            if self._closed:
                raise RuntimeError("updater is closed")
            self._items.append(item)
            self._cond.notify_all()

    def get(self) -> Manifest | None:
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if self._closed:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


def replace_binary(current_path: str | os.PathLike[str], new_binary_path: str | os.PathLike[str]) -> None:
    """Move ``new_binary_path`` over ``current_path``, keeping a backup until it succeeded."""
    current = os.fspath(current_path)
    backup = current + ".bak"
    try:
        os.replace(current, backup)
    except OSError as exc:
        raise RuntimeError(f"failed to backup current binary: {exc}") from exc

    try:
        os.replace(os.fspath(new_binary_path), current)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.replace(backup, current)
        raise RuntimeError(f"failed to replace binary: {exc}") from exc

    with contextlib.suppress(OSError):
        os.remove(backup)

    try:
        os.chmod(current, 0o755)
    except OSError as exc:
        raise RuntimeError(f"failed to set permissions: {exc}") from exc


class Updater:
    """Checks ``manifest_url`` periodically and announces or applies new releases.

    Intervals are in seconds. Newly found manifests are handed to the callbacks
    registered with :meth:`listen_for_update_available`; applied ones to those
    registered with :meth:`listen_for_update_applied`.
    """

    def __init__(
        self,
        current_version: str = "",
        ctx: Mapping[Any, Any] | None = None,
        *,
        manifest_url: str = "",
        update_requester: UpdateRequester | None = None,
        manifest_requester: ManifestRequester | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        initial_poll_delay: float = DEFAULT_INITIAL_POLL_DELAY,
        emitter: Emitter | None = None,
        logger_factory: Callable[[Mapping[Any, Any] | None], Logger] | None = None,
        executable_path: str | os.PathLike[str] | None = None,
        temp_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        self._ctx: dict[Any, Any] = {**(ctx or {}), ContextKey.SERVICE: SERVICE_NAME}

        if not current_version:
            current_version = get_string_value(self._ctx, ContextKey.CLIENT_VERSION)
            if not current_version:
                raise ValueError("current client version cannot be empty")
        if poll_interval <= 0:
            raise ValueError("failed to apply option: poll interval must be greater than 0")
        if initial_poll_delay < 0:
            raise ValueError("failed to apply option: initial poll delay cannot be negative")

        self.current_version = current_version
        self.manifest_url = manifest_url
        self.poll_interval = poll_interval
        self.initial_poll_delay = initial_poll_delay
        self._update_requester: UpdateRequester = update_requester or HttpUpdateRequester()
        self._manifest_requester: ManifestRequester = manifest_requester or HttpManifestRequester()
        self._events: Emitter = emitter if emitter is not None else NoopEmitter()
        self._logger = new_logger(self._ctx, logger_factory)
        self._executable_path = os.fspath(executable_path) if executable_path is not None else None
        self._temp_dir = os.fspath(temp_dir) if temp_dir is not None else None

        self._available = _Mailbox()
        self._applied = _Mailbox()
        self._stop = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False

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
                self.trigger_update_check()
            except Exception as exc:
                self._logger.error("failed to trigger update check", "error", exc)
                return
        self._logger.warn("stopped service because it was closed")

    def name(self) -> str:
        """Return the service name."""
        return SERVICE_NAME

    def close(self) -> None:
        """Stop polling, release listeners and wait for the background thread."""
        with self._close_lock:
            if not self._closed:
                self._closed = True
                self._stop.set()
                self._available.close()
                self._applied.close()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "Updater":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def poll_events(self) -> list[Event]:
        """Return and clear the events emitted so far."""
        return self._events.poll_events()

    def listen_for_update_available(self, callback: UpdateCallback) -> None:
        """Call ``callback`` with every manifest found to be newer than the running version."""
        self._listen(self._available, callback)

    def listen_for_update_applied(self, callback: UpdateCallback) -> None:
        """Call ``callback`` with every manifest whose release was applied."""
        self._listen(self._applied, callback)

    def _listen(self, mailbox: _Mailbox, callback: UpdateCallback) -> None:
        def loop() -> None:
            while (manifest := mailbox.get()) is not None:
                try:
                    callback(manifest)
                except Exception as exc:
                    self._logger.error("update listener failed", "error", exc)

        threading.Thread(target=loop, name=f"{SERVICE_NAME}-listener", daemon=True).start()

    def _push(self, event_type: UpdateEventType, **kwargs: Any) -> None:
        self._events.push(new_event(self._ctx, event_type, **kwargs))

    def trigger_update_check(self) -> None:
        """Fetch the manifest and announce it if its version differs from the running one."""
        try:
            manifest = self._manifest_requester.fetch(self.manifest_url)
        except Exception as exc:
            error = RuntimeError(f"failed to fetch manifest: {exc}")
            self._push(UpdateEventType.UPDATE_AVAILABLE, error=error)
            raise RuntimeError(f"failed to check for updates: {error}") from exc

        if manifest.version == self.current_version:
            self._push(UpdateEventType.NO_UPDATE_AVAILABLE)
            self._logger.info("no update is available")
            return

        self._push(UpdateEventType.UPDATE_AVAILABLE, data={"manifest": manifest.to_dict()})
        self._available.put(manifest)

    def apply_update(self, manifest: Manifest) -> None:
        """Download the release of ``manifest``, verify it and replace the running binary."""
        data = {"manifest": manifest.to_dict()}
        self._push(UpdateEventType.UPDATE_STARTED, data=data)

        try:
            self._apply_update(manifest)
        except Exception as exc:
            error = RuntimeError(f"failed to apply update: {exc}")
            self._push(UpdateEventType.UPDATE_APPLIED, data=data, error=error)
            raise error from exc

        self._push(UpdateEventType.UPDATE_APPLIED, data=data)
        self._logger.info("new update has been applied", "version", manifest.version)

    def _apply_update(self, manifest: Manifest) -> None:
        self._logger.info("going to apply update", "version", manifest.version)
        self._push(UpdateEventType.UPDATE_DOWNLOAD_STARTED)

        try:
            binary = self._update_requester.fetch(manifest)
        except Exception as exc:
            raise RuntimeError(f"failed to fetch update {manifest.version}: {exc}") from exc

        with contextlib.closing(binary):
            self._push(UpdateEventType.UPDATE_DOWNLOADED)
            self._logger.debug("update fetched successfully", "version", manifest.version)

            exec_path = self._executable_path or sys.executable
            if not exec_path:
                raise RuntimeError("failed to find current binary")

            try:
                fd, tmp_path = tempfile.mkstemp(prefix="update-", dir=self._temp_dir)
            except OSError as exc:
                raise RuntimeError(f"failed to create temporary file: {exc}") from exc

            try:
                hasher = hashlib.sha256()
                try:
                    with os.fdopen(fd, "wb") as tmp_file:
                        while chunk := binary.read(_COPY_BUFFER):
                            tmp_file.write(chunk)
                            hasher.update(chunk)
                except OSError as exc:
                    raise RuntimeError(f"failed to write binary to temp file: {exc}") from exc

                if manifest.sha256:
                    actual = hasher.hexdigest()
                    if actual != manifest.sha256:
                        raise RuntimeError(
                            "updated stopped because checksum mismatch: "
                            f"expected {manifest.sha256}, actual {actual}"
                        )
                    self._logger.debug("going to proceed with update because checksum matches")

                try:
                    replace_binary(exec_path, tmp_path)
                except RuntimeError as exc:
                    raise RuntimeError(f"failed to replace current binary: {exc}") from exc
            finally:
                with contextlib.suppress(OSError):
                    os.remove(tmp_path)

        self._applied.put(manifest)


def _copy_file(src: str, dst: str) -> None:
    shutil.copyfile(src, dst)