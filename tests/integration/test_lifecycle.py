"""
Integration tests for the server lifecycle: start, conflict, drain, stop.
"""

import socket
import threading
import time

import pytest

from chirpy import HTTPServer, ServerClosedError, ServerConfig
from chirpy.http import ok


def lifecycle_config(**overrides) -> ServerConfig:
    values = dict(host="127.0.0.1", port=0, min_workers=2, max_workers=8)
    values.update(overrides)
    return ServerConfig(**values)


class Gate:
    """Lets a test hold a handler in flight and know when it got there."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def handler(self, request):
        self.entered.set()
        self.release.wait(10)
        return ok("slow")


def background_request(running, path: str):
    """Issue a GET in a thread; returns (thread, results dict)."""
    results = {}

    def go():
        try:
            response, body = running.request("GET", path)
            results["status"] = response.status
            results["connection"] = response.getheader("Connection")
            results["body"] = body
        except Exception as e:
            results["error"] = e

    thread = threading.Thread(target=go, daemon=True)
    thread.start()
    return thread, results


class TestStartup:
    """Tests for run() and binding."""

    def test_serves_on_ephemeral_port(self, serve):
        server = HTTPServer(lifecycle_config())
        server.router.add_route("/ping", lambda request: ok("pong"))

        running = serve(server)

        assert running.port != 0
        assert server.is_running
        response, body = running.request("GET", "/ping")
        assert response.status == 200
        assert body == b"pong"

    def test_port_conflict_raises(self, serve):
        """A second server on a taken port fails with OSError."""
        first = serve(HTTPServer(lifecycle_config()))
        second = HTTPServer(lifecycle_config(port=first.port))

        with pytest.raises(OSError):
            second.run()

        assert not second.is_running

    def test_run_after_shutdown(self):
        """A server never re-binds once shut down."""
        server = HTTPServer(lifecycle_config())

        assert server.shutdown(1.0) is True
        with pytest.raises(ServerClosedError):
            server.run()

    def test_server_closed_error_is_runtime_error(self):
        assert issubclass(ServerClosedError, RuntimeError)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            HTTPServer(ServerConfig(port=-5))


class TestShutdown:
    """Tests for shutdown()."""

    def test_run_returns_none(self, serve):
        running = serve(HTTPServer(lifecycle_config()))

        assert running.server.shutdown(2.0) is True
        assert running.returned.wait(5.0)
        assert running.error is None

    def test_stops_accepting(self, serve):
        running = serve(HTTPServer(lifecycle_config()))
        port = running.port

        running.server.shutdown(1.0)
        running.returned.wait(5.0)

        with pytest.raises(OSError):
            socket.create_connection(("127.0.0.1", port), timeout=1.0).close()

    def test_idempotent(self, serve):
        running = serve(HTTPServer(lifecycle_config()))

        assert running.server.shutdown(1.0) is True
        assert running.server.shutdown(1.0) is True
        assert running.server.shutdown(0.01) is True

    def test_concurrent_shutdown_calls(self, serve):
        running = serve(HTTPServer(lifecycle_config()))
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(running.server.shutdown(2.0)))
            for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == [True] * 5

    def test_shutdown_racing_startup(self):
        """shutdown() right after starting run() never hangs either side."""
        server = HTTPServer(lifecycle_config())
        outcome = {}

        def run():
            try:
                outcome["result"] = server.run()
            except ServerClosedError as e:
                outcome["result"] = e

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        assert server.shutdown(2.0) is True
        thread.join(5.0)

        assert not thread.is_alive()
        assert outcome["result"] is None or isinstance(outcome["result"], ServerClosedError)

    def test_drains_in_flight_request(self, serve):
        """An in-flight request finishes and is told to close."""
        gate = Gate()
        server = HTTPServer(lifecycle_config())
        server.router.add_route("/slow", gate.handler)
        running = serve(server)

        thread, results = background_request(running, "/slow")
        assert gate.entered.wait(5.0)

        threading.Timer(0.2, gate.release.set).start()
        started = time.monotonic()
        drained = server.shutdown(5.0)
        thread.join(5.0)

        assert drained is True
        assert time.monotonic() - started < 5.0
        assert results["status"] == 200
        assert results["body"] == b"slow"
        assert results["connection"] == "close"

    def test_deadline_exceeded(self, serve):
        """A request still running at the deadline makes shutdown return False."""
        gate = Gate()
        server = HTTPServer(lifecycle_config())
        server.router.add_route("/stuck", gate.handler)
        running = serve(server)

        thread, results = background_request(running, "/stuck")
        assert gate.entered.wait(5.0)

        started = time.monotonic()
        drained = server.shutdown(0.3)
        elapsed = time.monotonic() - started

        gate.release.set()
        thread.join(5.0)

        assert drained is False
        assert 0.25 <= elapsed < 2.0

    def test_idle_keep_alive_closed(self, serve):
        """Idle keep-alive connections do not hold up shutdown."""
        server = HTTPServer(lifecycle_config())
        server.router.add_route("/ping", lambda request: ok("pong"))
        running = serve(server)

        conn = running.connection()
        conn.request("GET", "/ping")
        response = conn.getresponse()
        response.read()
        assert response.getheader("Connection") == "keep-alive"

        started = time.monotonic()
        assert server.shutdown(5.0) is True
        assert time.monotonic() - started < 2.0
        conn.close()

    def test_connected_but_silent_client(self, serve):
        """A client that connected but never sent a byte counts as idle."""
        running = serve(HTTPServer(lifecycle_config()))
        sock = socket.create_connection(("127.0.0.1", running.port))
        try:
            time.sleep(0.1)
            started = time.monotonic()
            assert running.server.shutdown(5.0) is True
            assert time.monotonic() - started < 2.0
        finally:
            sock.close()


class TestOverload:
    def test_full_queue_gets_503(self, serve):
        gate = Gate()
        server = HTTPServer(lifecycle_config(min_workers=1, max_workers=1, queue_size=1))
        server.router.add_route("/stuck", gate.handler)
        running = serve(server)

        thread, _ = background_request(running, "/stuck")
        assert gate.entered.wait(5.0)

        queued = socket.create_connection(("127.0.0.1", running.port))
        rejected = socket.create_connection(("127.0.0.1", running.port))
        try:
            rejected.settimeout(5.0)
            data = rejected.recv(4096)
        finally:
            gate.release.set()
            queued.close()
            rejected.close()
            thread.join(5.0)

        assert data.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
