"""
End-to-end tests of every Chirpy route over real sockets.
"""

import json
import socket

import pytest

from chirpy import HTTPServer, ServerConfig


def post_json(running, path: str, payload: bytes):
    return running.request(
        "POST", path, body=payload, headers={"Content-Type": "application/json"}
    )


def raw_exchange(running, data: bytes) -> bytes:
    """Send raw bytes, read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", running.port), timeout=5.0) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestHome:
    def test_home_document(self, running_app):
        response, body = running_app.request("GET", "/")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/html; charset=utf-8"
        assert b"Welcome to Chirpy" in body

    def test_home_is_get_only(self, running_app):
        response, body = running_app.request("POST", "/")

        assert response.status == 405
        assert response.getheader("Allow") == "GET"


class TestStaticApp:
    """Tests for /app/ and the hit counter it feeds."""

    def test_file(self, running_app):
        response, body = running_app.request("GET", "/app/app.css")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/css; charset=utf-8"
        assert body == b"body { color: #333; }"

    def test_index(self, running_app):
        response, body = running_app.request("GET", "/app/")

        assert response.status == 200
        assert b"Welcome to Chirpy" in body

    def test_bare_prefix_redirects(self, running_app):
        response, _ = running_app.request("GET", "/app")

        assert response.status == 301
        assert response.getheader("Location") == "/app/"

    def test_head(self, running_app):
        response, body = running_app.request("HEAD", "/app/app.css")

        assert response.status == 200
        assert response.getheader("Content-Length") == str(len(b"body { color: #333; }"))
        assert body == b""

    def test_post_not_allowed(self, running_app):
        response, body = running_app.request("POST", "/app/app.css", body=b"")

        assert response.status == 405
        assert response.getheader("Allow") == "GET, HEAD"

    def test_hits_counted(self, running_app, api_config):
        for path in ("/app/", "/app/app.css", "/app/missing.txt", "/app"):
            running_app.request("GET", path)

        response, body = running_app.request("GET", "/metrics")

        assert body == b"Hits: 4"
        assert api_config.hits.read() == 4

    def test_other_routes_not_counted(self, running_app, api_config):
        running_app.request("GET", "/")
        running_app.request("GET", "/api/healthz")
        running_app.request("GET", "/metrics")

        assert api_config.hits.read() == 0


class TestHealth:
    def test_get(self, running_app):
        response, body = running_app.request("GET", "/api/healthz")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/plain; charset=utf-8"
        assert body == b"OK"

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    def test_other_methods(self, running_app, method: str):
        response, body = running_app.request(method, "/api/healthz", body=b"")

        assert response.status == 405
        assert response.getheader("Allow") == "GET"
        assert body == b""


class TestMetricsAndReset:
    def test_metrics_format(self, running_app):
        response, body = running_app.request("GET", "/metrics")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/plain; charset=utf-8"
        assert body == b"Hits: 0"

    def test_reset(self, running_app):
        running_app.request("GET", "/app/")
        running_app.request("GET", "/app/")

        response, body = running_app.request("POST", "/reset", body=b"")

        assert response.status == 200
        assert body == b""
        assert running_app.request("GET", "/metrics")[1] == b"Hits: 0"

    def test_metrics_is_get_only(self, running_app):
        response, _ = running_app.request("POST", "/metrics", body=b"")

        assert response.status == 405
        assert response.getheader("Allow") == "GET"

    def test_reset_is_post_only(self, running_app, api_config):
        api_config.hits.increment()

        response, _ = running_app.request("GET", "/reset")

        assert response.status == 405
        assert response.getheader("Allow") == "POST"
        assert api_config.hits.read() == 1


class TestValidateChirp:
    def test_profanity_cleaned(self, running_app):
        response, body = post_json(
            running_app, "/api/validate_chirp", b'{"body": "What a kerfuffle this is"}'
        )

        assert response.status == 200
        assert response.getheader("Content-Type") == "application/json"
        assert json.loads(body) == {"cleaned_body": "What a **** this is"}

    def test_invalid_json(self, running_app):
        response, body = post_json(running_app, "/api/validate_chirp", b"{invalid json")

        assert response.status == 400
        assert response.getheader("Content-Type") == "application/json"
        assert body == b'{"error":"Invalid JSON"}'

    def test_too_long(self, running_app):
        payload = json.dumps({"body": "a" * 141}).encode()

        response, body = post_json(running_app, "/api/validate_chirp", payload)

        assert response.status == 400
        assert json.loads(body) == {"error": "Chirp is too long"}

    def test_exactly_140(self, running_app):
        payload = json.dumps({"body": "a" * 140}).encode()

        response, body = post_json(running_app, "/api/validate_chirp", payload)

        assert response.status == 200

    def test_utf8_round_trip(self, running_app):
        payload = json.dumps({"body": "ça va, sharbert"}, ensure_ascii=False).encode("utf-8")

        response, body = post_json(running_app, "/api/validate_chirp", payload)

        assert json.loads(body.decode("utf-8")) == {"cleaned_body": "ça va, ****"}

    def test_lone_surrogate_escape(self, running_app):
        """An unpaired \\ud800 escape is answered, not turned into a 500."""
        response, body = post_json(
            running_app, "/api/validate_chirp", b'{"body":"hi \\ud800"}'
        )

        assert response.status == 200
        assert json.loads(body.decode("utf-8")) == {"cleaned_body": "hi �"}

    def test_get_not_allowed(self, running_app):
        response, body = running_app.request("GET", "/api/validate_chirp")

        assert response.status == 405
        assert response.getheader("Allow") == "POST"
        assert body == b""


class TestProtocol:
    """Transport behaviour seen by clients."""

    def test_unknown_path(self, running_app):
        response, body = running_app.request("GET", "/does/not/exist")

        assert response.status == 404
        assert json.loads(body) == {"error": "Not Found"}

    def test_standard_headers(self, running_app):
        response, _ = running_app.request("GET", "/api/healthz")

        assert response.getheader("Server") == "Chirpy/1.0"
        assert response.getheader("Date").endswith("GMT")
        assert response.getheader("Content-Length") == "2"
        assert response.getheader("X-Request-ID")

    def test_keep_alive_reuses_connection(self, running_app):
        conn = running_app.connection()
        try:
            for _ in range(3):
                conn.request("GET", "/api/healthz")
                response = conn.getresponse()
                assert response.read() == b"OK"
                assert response.getheader("Connection") == "keep-alive"
                assert response.getheader("Keep-Alive") == "timeout=120"
        finally:
            conn.close()

    def test_pipelined_requests(self, running_app):
        data = raw_exchange(
            running_app,
            b"GET /api/healthz HTTP/1.1\r\nHost: t\r\n\r\n"
            b"GET /metrics HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n",
        )

        assert data.count(b"HTTP/1.1 200 OK\r\n") == 2
        assert data.endswith(b"Hits: 0")

    def test_connection_close_honoured(self, running_app):
        data = raw_exchange(
            running_app, b"GET /api/healthz HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        assert b"Connection: close\r\n" in data
        assert data.endswith(b"\r\n\r\nOK")

    def test_malformed_request(self, running_app):
        data = raw_exchange(running_app, b"THIS IS NOT HTTP\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert b"application/json" in data

    def test_unsupported_version(self, running_app):
        data = raw_exchange(running_app, b"GET / HTTP/3.0\r\nHost: t\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 505 HTTP Version Not Supported\r\n")

    def test_chunked_chirp(self, running_app):
        """A chunked body is decoded and its bytes never leak into the next request."""
        data = raw_exchange(
            running_app,
            b"POST /api/validate_chirp HTTP/1.1\r\nHost: t\r\n"
            b"Content-Type: application/json\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"8\r\n{\"body\":\r\n10\r\n\"a kerfuffle\"}  \r\n0\r\n\r\n"
            b"GET /api/healthz HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n",
        )

        assert data.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b'{"cleaned_body":"a ****"}' in data
        assert data.count(b"HTTP/1.1 ") == 2
        assert data.endswith(b"\r\n\r\nOK")

    def test_unsupported_transfer_coding(self, running_app):
        data = raw_exchange(
            running_app,
            b"POST /api/validate_chirp HTTP/1.1\r\nHost: t\r\n"
            b"Transfer-Encoding: gzip\r\n\r\n",
        )

        assert data.startswith(b"HTTP/1.1 501 Not Implemented\r\n")
        assert b"Connection: close\r\n" in data

    def test_malformed_chunk_size(self, running_app):
        data = raw_exchange(
            running_app,
            b"POST /api/validate_chirp HTTP/1.1\r\nHost: t\r\n"
            b"Transfer-Encoding: chunked\r\n\r\nnope\r\n",
        )

        assert data.startswith(b"HTTP/1.1 400 Bad Request\r\n")

    def test_unknown_method_on_guarded_route(self, running_app):
        data = raw_exchange(
            running_app, b"PURGE /metrics HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        assert data.startswith(b"HTTP/1.1 405 Method Not Allowed\r\n")
        assert b"Allow: GET\r\n" in data

    def test_request_too_large(self, config: ServerConfig, serve):
        config.max_request_size = 1024
        running = serve(HTTPServer(config))

        data = raw_exchange(
            running,
            b"POST /api/validate_chirp HTTP/1.1\r\nHost: t\r\nContent-Length: 5000\r\n\r\n",
        )

        assert data.startswith(b"HTTP/1.1 413 Payload Too Large\r\n")
        assert b"Connection: close\r\n" in data

    def test_handler_exception_is_500(self, config: ServerConfig, serve):
        server = HTTPServer(config)

        @server.get("/boom")
        def boom(request):
            raise RuntimeError("boom")

        running = serve(server)
        response, body = running.request("GET", "/boom")

        assert response.status == 500
        assert json.loads(body) == {"error": "Internal Server Error"}

        # The connection pool survives a failing handler.
        response, _ = running.request("GET", "/boom")
        assert response.status == 500
