"""
pytest configuration and fixtures.
"""

import http.client
import threading
from pathlib import Path
from typing import Generator, Optional

import pytest

from chirpy import ApiConfig, HTTPServer, ServerConfig, create_app
from chirpy.http import HTTPRequest


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /app/assets/logo.png?size=small&theme=dark HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: image/png\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample chirp validation request."""
    body = b'{"body": "What a kerfuffle this is"}'
    return (
        b"POST /api/validate_chirp HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    """
    A small static tree:

        index.html
        app.css
        assets/logo.png
        docs/            (no index: listed)
    """
    (tmp_path / "index.html").write_text("<html><body>Welcome to Chirpy</body></html>")
    (tmp_path / "app.css").write_text("body { color: #333; }")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nfake")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "readme.txt").write_text("chirp chirp")
    return tmp_path


@pytest.fixture
def config(static_root: Path) -> ServerConfig:
    """Test configuration on an ephemeral loopback port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=8,
        static_dir=str(static_root),
        log_level="WARNING",
    )


@pytest.fixture
def make_request():
    """Build an HTTPRequest without going through the parser."""
    def factory(
        method: str = "GET",
        path: str = "/",
        body: bytes = b"",
        headers: Optional[dict] = None,
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            path=path,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            body=body,
        )
    return factory


class RunningServer:
    """Runs HTTPServer.run in a daemon thread for integration tests."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.error: Optional[BaseException] = None
        self.returned = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, timeout: float = 5.0) -> "RunningServer":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout):
            raise RuntimeError(f"Server failed to start: {self.error}")
        return self

    def _run(self):
        try:
            self.server.run()
        except BaseException as e:
            self.error = e
        finally:
            self.returned.set()

    @property
    def port(self) -> int:
        return self.server.address[1]

    def connection(self, timeout: float = 5.0) -> http.client.HTTPConnection:
        return http.client.HTTPConnection("127.0.0.1", self.port, timeout=timeout)

    def request(self, method: str, path: str, body: Optional[bytes] = None, headers=None):
        """One request on a fresh connection; returns (response, body)."""
        conn = self.connection()
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return response, response.read()
        finally:
            conn.close()

    def stop(self, timeout: float = 5.0) -> bool:
        drained = self.server.shutdown(timeout)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        return drained


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig()


@pytest.fixture
def running_app(config: ServerConfig, api_config: ApiConfig) -> Generator[RunningServer, None, None]:
    """The full Chirpy app, listening on an ephemeral port."""
    running = RunningServer(create_app(config, api_config)).start()
    yield running
    running.stop()


@pytest.fixture
def serve() -> Generator:
    """
    Start any HTTPServer in the background; stopped at teardown.

        running = serve(server)
    """
    started = []

    def start(server: HTTPServer) -> RunningServer:
        running = RunningServer(server).start()
        started.append(running)
        return running

    yield start

    for running in started:
        running.stop(timeout=1.0)
