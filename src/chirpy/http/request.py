"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects.
Implements the message syntax of RFC 7230.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │    POST /api/validate_chirp?debug=1 HTTP/1.1\r\n               │ │
    │  │    ─┬── ──────────┬──────── ───┬─── ───┬────                   │ │
    │  │   Method        Path        Query    Version                   │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: localhost:8080\r\n                                    │ │
    │  │    Content-Type: application/json\r\n                          │ │
    │  │    Content-Length: 17\r\n                                      │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                                                         │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (Content-Length bytes) ──────────────────────────────────┐ │
    │  │    {"body": "hello"}                                            │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSE ERRORS
=============================================================================

    400 Bad Request                 malformed request line, bad
                                    Content-Length, truncated body,
                                    bad chunk framing, ".." path segment
    413 Payload Too Large           request exceeds max_request_size
    501 Not Implemented             Transfer-Encoding other than chunked
    505 HTTP Version Not Supported  anything but HTTP/1.0 and HTTP/1.1

A body is framed by Transfer-Encoding: chunked when that header is
present, otherwise by Content-Length (RFC 7230 3.3.3).

Unknown METHODS are not a parse error. Any RFC 7230 token is accepted so
that routes and method guards answer with a proper 405 and Allow header.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Tuple
from urllib.parse import parse_qs, urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method, as sent ("GET", "POST", ...)
        path:           URL-decoded path WITHOUT query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (exactly Content-Length)
        path_params:    Filled in by the router: "/app/*path" → {"path": ...}
        client_address: (ip, port) of the peer
        raw:            The original request bytes

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json"), or None."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as int; 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after this request?

            HTTP/1.1: yes, unless "Connection: close"
            HTTP/1.0: no, unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Size check                     too large → 413               │
        │  2. Split at \\r\\n\\r\\n               missing   → 400               │
        │  3. Request line                   bad       → 400 / 505         │
        │  4. Headers (lowercased names)                                    │
        │  5. Body by Content-Length         invalid   → 400               │
        └───────────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest
    """

    # METHOD is an RFC 7230 token; URI is anything without spaces
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Client's (ip, port) tuple.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes outside ASCII are legal but opaque (RFC 7230 3.2.4)
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        transfer_encoding = headers.get("transfer-encoding")
        if transfer_encoding is not None:
            if not is_chunked(transfer_encoding):
                raise HTTPParseError(
                    f"Unsupported Transfer-Encoding: {transfer_encoding!r}",
                    status_code=501,
                )
            decoded = decode_chunked(data, header_end + 4)
            if decoded is None:
                raise HTTPParseError("Incomplete chunked body")
            body = decoded[0]
        else:
            content_length = self._content_length(headers)
            if len(body) < content_length:
                raise HTTPParseError(
                    f"Incomplete body: expected {content_length} bytes, got {len(body)}"
                )
            body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        METHOD SP REQUEST-URI SP HTTP-VERSION

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        if not path.startswith("/"):
            raise HTTPParseError(f"Invalid path: {path!r}")

        # "GET /app/../../etc/passwd" never reaches a handler
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 3.2.2). Lines
        starting with whitespace continue the previous header. Lines
        without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _content_length(self, headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length


# =============================================================================
# CHUNKED TRANSFER CODING (RFC 7230 4.1)
# =============================================================================
#
#     1a;ext=1\r\n                 size in hex, extensions ignored
#     <26 bytes>\r\n
#     0\r\n                        last chunk
#     Trailer: x\r\n               optional trailers, discarded
#     \r\n
#

_CHUNK_SIZE_PATTERN = re.compile(rb"^[0-9A-Fa-f]{1,16}$")


def is_chunked(transfer_encoding: str) -> bool:
    """True when chunked is the final (framing) transfer coding."""
    codings = [c.strip().lower() for c in transfer_encoding.split(",")]
    return codings == ["chunked"]


def decode_chunked(data: bytes, start: int = 0) -> Optional[Tuple[bytes, int]]:
    """
    Decode a chunked body beginning at data[start].

    Returns:
        (body, end) with end just past the final CRLF, or None if more
        bytes are needed to finish the body.

    Raises:
        HTTPParseError: On a bad chunk-size line or missing chunk CRLF.
    """
    chunks = []
    pos = start

    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None

        size_field = data[pos:line_end].split(b";", 1)[0].strip()
        if not _CHUNK_SIZE_PATTERN.match(size_field):
            raise HTTPParseError(f"Invalid chunk size: {size_field!r}")
        size = int(size_field, 16)
        pos = line_end + 2

        if size == 0:
            break
        if len(data) < pos + size + 2:
            return None
        if data[pos + size:pos + size + 2] != b"\r\n":
            raise HTTPParseError("Chunk data not followed by CRLF")

        chunks.append(data[pos:pos + size])
        pos += size + 2

    # Trailer lines until the empty line
    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None
        if line_end == pos:
            return b"".join(chunks), pos + 2
        pos = line_end + 2


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
