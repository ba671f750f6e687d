from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class _Handler(BaseHTTPRequestHandler):
    hits: dict[str, int] = {}
    lock = threading.Lock()

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _count_hit(self) -> int:
        with self.lock:
            n = type(self).hits.get(self.path, 0) + 1
            type(self).hits[self.path] = n
        return n

    def _send(self, status: int, body: str = "", headers: dict[str, str] | None = None) -> None:
        body_bytes = body.encode("utf-8")
        self.send_response(status)
        for k, v in (headers or {}).items():
            self.send_header(k, v)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body_bytes)))
        self.end_headers()
        self.wfile.write(body_bytes)

    def do_GET(self) -> None:  # noqa: N802
        n = self._count_hit()

        if self.path == "/ok":
            self._send(200, "ok")
            return
        if self.path == "/no_content":
            self.send_response(204)
            self.end_headers()
            return
        if self.path == "/redirect":
            self._send(302, "", {"Location": "/ok"})
            return
        if self.path == "/redirect_to_error":
            self._send(302, "", {"Location": "/error"})
            return
        if self.path == "/permanent_no_location":
            self._send(308, "moved")
            return
        if self.path.startswith("/error"):
            self._send(500, "boom")
            return
        if self.path.startswith("/not_found"):
            self._send(404, "nope")
            return
        if self.path.startswith("/slow"):
            time.sleep(2.0)
            self._send(200, "late")
            return
        if self.path.startswith("/flaky"):
            # First hit fails, later hits succeed.
            self._send(503 if n == 1 else 200, "flaky")
            return

        self._send(404, "Not Found")


@pytest.fixture(autouse=True)
def _no_proxy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # httpx honours proxy env vars; loopback test traffic must go direct.
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def local_server_base_url() -> str:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.daemon_threads = True
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture()
def server_hits() -> dict[str, int]:
    with _Handler.lock:
        _Handler.hits.clear()
    return _Handler.hits


@pytest.fixture()
def closed_port_url() -> str:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return f"http://127.0.0.1:{port}/"
