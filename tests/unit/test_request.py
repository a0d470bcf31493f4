"""
Unit tests for HTTP request parsing.
"""

import pytest

from chirpy.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    decode_chunked,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/app/assets/logo.png"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "image/png"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("size") == "small"
        assert request.get_query("theme") == "dark"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing a chirp POST with a JSON body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/api/validate_chirp"
        assert request.content_type == "application/json"
        assert request.body == b'{"body": "What a kerfuffle this is"}'
        assert request.is_keep_alive is False

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path and query parsing."""
        raw = b"GET /app/my%20file.txt?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/app/my file.txt"
        assert request.get_query("q") == "hello world"

    def test_any_method_token_is_accepted(self):
        """Unknown methods parse; the route decides whether to answer 405."""
        raw = b"PURGE /metrics HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "PURGE"

    def test_parse_invalid_method(self):
        """A method with characters outside the token set is malformed."""
        raw = b"G(T /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_unsupported_version(self):
        """HTTP/2.0 in a text request line is answered with 505."""
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_missing_header_terminator(self):
        """Headers must end with an empty line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /app/../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert "path" in str(exc_info.value).lower()
        assert exc_info.value.status_code == 400

    def test_encoded_traversal_blocked(self):
        """%2e%2e decodes to .. before the check."""
        raw = b"GET /app/%2e%2e/secret HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        # HTTP/1.0 (Connection: close by default)
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        # HTTP/1.1 (keep-alive by default)
        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_content_length_handling(self):
        """Test Content-Length framing."""
        body = b"test body"
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == body

    def test_body_beyond_content_length_is_ignored(self):
        """Bytes past Content-Length belong to the next request."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n{}GET"

        assert parse_request(raw).body == b"{}"

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value: bytes):
        """Non-numeric or negative Content-Length is a 400."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_incomplete_body(self):
        """A body shorter than Content-Length is rejected."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nshort"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.content_type == "text/html"
        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"

    def test_repeated_headers_are_joined(self):
        """Repeated header lines combine into one comma-separated value."""
        raw = b"GET / HTTP/1.1\r\nAccept: text/html\r\nAccept: text/plain\r\n\r\n"

        assert parse_request(raw).headers["accept"] == "text/html, text/plain"


class TestChunkedBodies:
    """Tests for Transfer-Encoding: chunked."""

    HEAD = b"POST /api/validate_chirp HTTP/1.1\r\nHost: test\r\nTransfer-Encoding: chunked\r\n\r\n"

    def test_parse_chunked_body(self):
        """Chunks are joined into the request body."""
        raw = self.HEAD + b'7\r\n{"body"\r\n9\r\n:"hello"}\r\n0\r\n\r\n'

        request = parse_request(raw)

        assert request.body == b'{"body":"hello"}'

    def test_extensions_and_trailers_ignored(self):
        raw = self.HEAD + b"5;name=value\r\nhello\r\n0\r\nX-Trailer: yes\r\n\r\n"

        assert parse_request(raw).body == b"hello"

    def test_chunked_wins_over_content_length(self):
        raw = (
            b"POST / HTTP/1.1\r\nContent-Length: 100\r\n"
            b"Transfer-Encoding: chunked\r\n\r\n2\r\nhi\r\n0\r\n\r\n"
        )

        assert parse_request(raw).body == b"hi"

    @pytest.mark.parametrize("body", [
        b"zz\r\nhello\r\n0\r\n\r\n",
        b"-5\r\nhello\r\n0\r\n\r\n",
        b"5\r\nhelloXX0\r\n\r\n",
    ])
    def test_malformed_chunks(self, body: bytes):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(self.HEAD + body)

        assert exc_info.value.status_code == 400

    def test_incomplete_chunked_body(self):
        with pytest.raises(HTTPParseError):
            parse_request(self.HEAD + b"5\r\nhel")

    def test_unsupported_transfer_coding(self):
        """Codings other than a lone chunked are 501."""
        raw = b"POST / HTTP/1.1\r\nTransfer-Encoding: gzip, chunked\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 501

    def test_decode_reports_end_of_body(self):
        """The end index stops before a pipelined request."""
        data = b"3\r\nabc\r\n0\r\n\r\nGET / HTTP/1.1\r\n\r\n"

        body, end = decode_chunked(data)

        assert body == b"abc"
        assert data[end:] == b"GET / HTTP/1.1\r\n\r\n"

    @pytest.mark.parametrize("partial", [b"", b"3\r\nab", b"3\r\nabc\r\n0\r\n", b"3\r\nabc\r\n0\r\nX: 1\r\n"])
    def test_decode_needs_more_bytes(self, partial: bytes):
        assert decode_chunked(partial) is None


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_query_first_value(self):
        """get_query returns the first of repeated values."""
        request = HTTPRequest(
            method="GET",
            path="/",
            query_params={"tags": ["chirp", "http", "server"]},
        )

        assert request.query_params["tags"] == ["chirp", "http", "server"]
        assert request.get_query("tags") == "chirp"

    def test_content_type_strips_parameters(self):
        """Charset and other parameters are not part of content_type."""
        request = HTTPRequest(
            method="POST",
            path="/api/validate_chirp",
            headers={"content-type": "Application/JSON; charset=utf-8"},
        )

        assert request.content_type == "application/json"

    def test_http10_keep_alive_opt_in(self):
        """HTTP/1.0 keeps the connection only when asked to."""
        request = HTTPRequest(
            method="GET",
            path="/",
            version="HTTP/1.0",
            headers={"connection": "keep-alive"},
        )

        assert request.is_keep_alive is True
