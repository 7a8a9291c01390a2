"""Downloading the binary that a manifest points to."""

import os
import re
import urllib.error
import urllib.request
from typing import BinaryIO, Protocol, runtime_checkable

from headless.manifest import Manifest

DEFAULT_CHUNK_SIZE = 2 * 1024 * 1024
_COPY_BUFFER = 64 * 1024
_INTEGER = re.compile(r"[+-]?[0-9]+")


@runtime_checkable
class UpdateRequester(Protocol):
    """Fetches the release described by a manifest as a readable, closable stream."""

    def fetch(self, manifest: Manifest) -> BinaryIO: ...


class AutoDeleteFile:
    """Read-only file that is removed from disk when closed."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self._file = open(self.path, "rb")

    @property
    def closed(self) -> bool:
        return self._file.closed

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything when ``size`` is negative."""
        return self._file.read(size)

    def close(self) -> None:
        """Close the file and delete it."""
        try:
            self._file.close()
        finally:
            os.remove(self.path)

    def __enter__(self) -> "AutoDeleteFile":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class HttpUpdateRequester:
    """Streams the release body straight from its URL."""

    def __init__(
        self,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float | None = None,
    ) -> None:
        self._opener = opener if opener is not None else urllib.request.build_opener()
        self._timeout = timeout

    def fetch(self, manifest: Manifest) -> BinaryIO:
        """Return the response body for ``manifest.url``."""
        try:
            request = urllib.request.Request(manifest.url, method="GET")
        except ValueError as exc:
            raise RuntimeError(f"failed to create request: {exc}") from exc

        try:
            return self._opener.open(request, timeout=self._timeout)
        except urllib.error.HTTPError as exc:
            # The body is handed over whatever the status; checksums guard its content.
            return exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"failed to fetch URL {manifest.url}: {exc}") from exc


class RangeUpdateRequester:
    """Downloads the release in ranged chunks into a temporary file, resuming partial downloads.

    The file is named ``update-<version>.tmp`` inside ``temp_dir`` and is
    deleted once the returned stream is closed. A failed download leaves it in
    place so that the next attempt continues where this one stopped.
    """

    def __init__(
        self,
        opener: urllib.request.OpenerDirector | None = None,
        temp_dir: str | os.PathLike[str] = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        target_perms: int = 0o600,
        timeout: float | None = None,
    ) -> None:
        if chunk_size < 0:
            raise ValueError("chunk size cannot be negative")
        self._opener = opener if opener is not None else urllib.request.build_opener()
        self.temp_dir = os.fspath(temp_dir)
        self.chunk_size = chunk_size or DEFAULT_CHUNK_SIZE
        self.target_perms = target_perms
        self._timeout = timeout

    def fetch(self, manifest: Manifest) -> AutoDeleteFile:
        """Download ``manifest.url`` and return the completed file."""
        tmp_path = os.path.join(self.temp_dir, f"update-{manifest.version}.tmp")
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, self.target_perms)
        except OSError as exc:
            raise RuntimeError(f"failed to open temp file: {exc}") from exc

        with os.fdopen(fd, "ab") as out:
            start = os.fstat(out.fileno()).st_size
            total = self._content_length(manifest.url)
            while start < total:
                end = min(start + self.chunk_size, total) - 1
                start += self._download_range(manifest.url, start, end, out)

        try:
            return AutoDeleteFile(tmp_path)
        except OSError as exc:
            raise RuntimeError(f"failed to reopen file: {exc}") from exc

    def _content_length(self, url: str) -> int:
        request = urllib.request.Request(url, method="HEAD")
        try:
            with self._opener.open(request, timeout=self._timeout) as response:
                header = response.headers.get("Content-Length")
        except urllib.error.HTTPError as exc:
            header = exc.headers.get("Content-Length") if exc.headers is not None else None
            exc.close()
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"failed HEAD request: {exc}") from exc

        if header is None or not _INTEGER.fullmatch(header):
            raise RuntimeError(f"invalid Content-Length: {header!r}")
        return int(header)

    def _download_range(self, url: str, start: int, end: int, out: BinaryIO) -> int:
        request = urllib.request.Request(url, method="GET", headers={"Range": f"bytes={start}-{end}"})
        try:
            response = self._opener.open(request, timeout=self._timeout)
        except urllib.error.HTTPError as exc:
            exc.close()
            raise RuntimeError(f"unexpected status code: {exc.code}") from exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"failed range request: {exc}") from exc

        written = 0
        with response:
            if response.status not in (200, 206):
                raise RuntimeError(f"unexpected status code: {response.status}")
            try:
                while chunk := response.read(_COPY_BUFFER):
                    out.write(chunk)
                    written += len(chunk)
            except OSError as exc:
                raise RuntimeError(f"error writing chunk: {exc}") from exc

        if written == 0:
            raise RuntimeError(f"empty response for range {start}-{end}")
        return written