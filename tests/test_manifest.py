import json
import socket
import threading
import urllib.request
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from headless.manifest import HttpManifestRequester, Manifest

_OPENER = urllib.request.build_opener(urllib.request.ProxyHandler({}))

_MANIFEST = {
    "version": "1.2.3",
    "sha256": "abc123",
    "url": "http://localhost/binary",
    "extra": "ignored",
}


class _ManifestHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/manifest.json":
            status, body = 200, json.dumps(_MANIFEST).encode()
        elif self.path == "/invalid.json":
            status, body = 200, b"{not json"
        elif self.path == "/empty":
            status, body = 204, b""
        else:
            status, body = 404, b"not found"
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@contextmanager
def _serve(handler):
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def base_url():
    with _serve(_ManifestHandler) as server:
        yield f"http://127.0.0.1:{server.server_address[1]}"


def test_round_trip():
    manifest = Manifest(version="2.0.0", sha256="deadbeef", url="http://localhost/b")
    assert Manifest.from_dict(manifest.to_dict()) == manifest


def test_to_dict_keys():
    assert set(Manifest().to_dict()) == {"version", "sha256", "url"}


def test_from_dict_missing_fields_default_to_empty():
    assert Manifest.from_dict({"version": "1.0"}) == Manifest(version="1.0", sha256="", url="")


def test_from_dict_wrong_type_raises():
    with pytest.raises(ValueError, match="version"):
        Manifest.from_dict({"version": 3})


def test_from_dict_not_an_object_raises():
    with pytest.raises(ValueError):
        Manifest.from_dict(["1.0"])


def test_fetch_returns_manifest(base_url):
    manifest = HttpManifestRequester(_OPENER).fetch(f"{base_url}/manifest.json")
    assert manifest == Manifest(version="1.2.3", sha256="abc123", url="http://localhost/binary")


def test_fetch_not_found_raises(base_url):
    with pytest.raises(RuntimeError, match="unexpected status code: 404"):
        HttpManifestRequester(_OPENER).fetch(f"{base_url}/missing")


def test_fetch_non_200_success_raises(base_url):
    with pytest.raises(RuntimeError, match="unexpected status code: 204"):
        HttpManifestRequester(_OPENER).fetch(f"{base_url}/empty")


def test_fetch_invalid_json_raises(base_url):
    with pytest.raises(RuntimeError, match="decode"):
        HttpManifestRequester(_OPENER).fetch(f"{base_url}/invalid.json")


def test_fetch_connection_failure_raises():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    with pytest.raises(RuntimeError, match="get manifest"):
        HttpManifestRequester(_OPENER).fetch(f"http://127.0.0.1:{port}/manifest.json")