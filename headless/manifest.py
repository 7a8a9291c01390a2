"""Update manifests and how they are fetched."""

import json
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass
class Manifest:
    """Describes an available release: its version, checksum and download URL."""

    version: str = ""
    sha256: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        """Build a manifest from its decoded JSON form; unknown keys are ignored."""
        if not isinstance(data, Mapping):
            raise ValueError(f"manifest must be a JSON object, got {type(data).__name__}")
        values = {}
        for key in ("version", "sha256", "url"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"manifest field {key} must be a string, got {type(value).__name__}")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Return the JSON-ready form of the manifest."""
        return {"version": self.version, "sha256": self.sha256, "url": self.url}


@runtime_checkable
class ManifestRequester(Protocol):
    """Fetches the manifest published at a URL."""

    def fetch(self, url: str) -> Manifest: ...


class HttpManifestRequester:
    """Fetches a manifest with an HTTP GET request."""

    def __init__(
        self,
        opener: urllib.request.OpenerDirector | None = None,
        timeout: float | None = None,
    ) -> None:
        self._opener = opener if opener is not None else urllib.request.build_opener()
        self._timeout = timeout

    def fetch(self, url: str) -> Manifest:
        """Return the manifest at ``url``; raise ``RuntimeError`` on any failure."""
        try:
            request = urllib.request.Request(url, method="GET")
        except ValueError as exc:
            raise RuntimeError(f"failed to create request: {exc}") from exc

        try:
            with self._opener.open(request, timeout=self._timeout) as response:
                status = response.status
                body = response.read()
        except urllib.error.HTTPError as exc:
            exc.close()
            raise RuntimeError(f"unexpected status code: {exc.code}") from exc
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"get manifest: {exc}") from exc

        if status != 200:
            raise RuntimeError(f"unexpected status code: {status}")

        try:
            return Manifest.from_dict(json.loads(body))
        except ValueError as exc:
            raise RuntimeError(f"decode: {exc}") from exc