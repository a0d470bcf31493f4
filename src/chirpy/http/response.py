"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses per RFC 7230.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                       ← status line          │
    │    Content-Type: text/plain; charset=utf-8\r\n                      │
    │    Content-Length: 2\r\n                     ← auto-added           │
    │    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n   ← auto-added           │
    │    Server: Chirpy/1.0\r\n                    ← auto-added           │
    │    \r\n                                      ← separator            │
    │    OK                                        ← body                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUILDER PATTERN
=============================================================================

    response = (ResponseBuilder()
        .status(HTTPStatus.BAD_REQUEST)
        .json({"error": "Chirp is too long"})
        .build())

Every builder method returns self except build().

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union, Iterable
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "Chirpy/1.0"

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

        Handler returns          to_bytes()              Socket sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length, Date and Server are added unless the handler set
        them. A HEAD response sets Content-Length itself and leaves the
        body empty.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

    ==========================================================================
    USAGE EXAMPLES
    ==========================================================================

    # Plain text
    ResponseBuilder().text("OK").build()

    # JSON error
    ResponseBuilder().status(HTTPStatus.BAD_REQUEST).json({"error": "..."}).build()

    # Redirect
    ResponseBuilder().redirect("/app/", permanent=True).build()

    ==========================================================================
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    # =========================================================================
    # STATUS & HEADERS
    # =========================================================================

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        """Set the status. Plain ints are converted to HTTPStatus."""
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY METHODS
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body. For structured data use json(), html() or text()."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = TEXT_CONTENT_TYPE) -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = HTML_CONTENT_TYPE
        return self

    def json(self, data: Any, content_type: str = JSON_CONTENT_TYPE) -> "ResponseBuilder":
        """
        Serialize data as the JSON body.

        Compact separators: {"error":"Invalid JSON"}. ensure_ascii=False
        keeps non-ASCII chirps readable; the bytes are UTF-8, which is the
        JSON default encoding.
        """
        self._body = json.dumps(
            data, ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    # =========================================================================
    # REDIRECTS, CACHING, CONNECTION
    # =========================================================================

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """301 if permanent, else 302."""
        self._status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        self._headers["Location"] = location
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        return self

    def keep_alive(self, timeout: int) -> "ResponseBuilder":
        self._headers["Connection"] = "keep-alive"
        self._headers["Keep-Alive"] = f"timeout={timeout}"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Sun, 18 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT; the locale never leaks in.
    """
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok("OK")
#     return not_found()
#     return method_not_allowed(["GET"])
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK.

    dict/list → JSON, str → text/plain, bytes → raw.
    """
    builder = ResponseBuilder()

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or TEXT_CONTENT_TYPE)
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def redirect(location: str, permanent: bool = False) -> HTTPResponse:
    return ResponseBuilder().redirect(location, permanent).build()


def error_response(status: Union[HTTPStatus, int], message: Optional[str] = None) -> HTTPResponse:
    """JSON error body {"error": message}, defaulting to the reason phrase."""
    status = HTTPStatus(status)
    return ResponseBuilder().status(status).json({"error": message or status.phrase}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    return error_response(HTTPStatus.FORBIDDEN, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: Iterable[str]) -> HTTPResponse:
    """
    405 Method Not Allowed.

    Carries the Allow header (RFC 7231 requires it) and NO body: the
    header is the whole answer.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Never expose exception details to the client."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
