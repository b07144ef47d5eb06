from __future__ import annotations

import socket
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


@dataclass
class FakeWiki:
    """Local HTTP server that records request paths and answers 200."""

    port: int
    paths: list[str] = field(default_factory=list)


@pytest.fixture
def fake_wiki() -> Iterator[FakeWiki]:
    wiki = FakeWiki(port=0)

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            wiki.paths.append(self.path)
            body = b"ok"
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:
            pass

    srv = ThreadingHTTPServer(("localhost", 0), Handler)
    wiki.port = srv.server_address[1]
    t = threading.Thread(target=srv.serve_forever, name="fake-wiki", daemon=True)
    t.start()
    try:
        yield wiki
    finally:
        srv.shutdown()
        srv.server_close()
        t.join(timeout=2.0)


@pytest.fixture
def free_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("localhost", 0))
        return s.getsockname()[1]


@pytest.fixture
def dead_proxy(monkeypatch: pytest.MonkeyPatch, free_port: int) -> str:
    """Point the proxy env vars at a port nobody listens on."""
    proxy = f"http://127.0.0.1:{free_port}"
    for name in ("HTTP_PROXY", "http_proxy", "HTTPS_PROXY", "https_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.setenv(name, proxy)
    for name in ("NO_PROXY", "no_proxy"):
        monkeypatch.delenv(name, raising=False)
    return proxy
