"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per request on the "chirpy.access" logger, with timing and
a request ID that is echoed back in the X-Request-ID response header.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (Apache-style, default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "POST /api/validate_chirp│
    │ HTTP/1.1" 200 31 0.42ms                                             │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "POST",                        │
    │  "path": "/api/validate_chirp", "client_ip": "127.0.0.1",           │
    │  "status_code": 200, "content_length": 31, "duration_ms": 0.42,    │
    │  ...}                                                               │
    └─────────────────────────────────────────────────────────────────────┘

Route it anywhere with plain logging configuration:

    logging.getLogger("chirpy.access").addHandler(file_handler)

=============================================================================
"""

import time
import json
import uuid
import re
import logging
from typing import Optional, Iterable
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("chirpy.access")

# Client-supplied IDs are reused only if they are short and printable
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    request_id:     Correlation ID (also sent as X-Request-ID)
    method:         HTTP method
    path:           Request path
    query:          Raw query parameters, "" if none
    client_ip:      Peer IP address
    user_agent:     User-Agent header or "-"
    status_code:    Response status
    content_length: Response body size in bytes
    duration_ms:    Time spent in the handler chain
    timestamp:      Local time, Apache format
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging middleware.

    Register it FIRST so that every request is logged, including those
    answered by a method guard or the router's 404:

        server.use(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json"
        include_request_id: Add X-Request-ID to every response
        log_level: Level used for access lines
        skip_paths: Paths that are never logged
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {log_format!r}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = self._request_id(request)
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths or not logger.isEnabledFor(self.log_level):
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=_query_string(request),
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=_content_length(response),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response

    def _request_id(self, request: HTTPRequest) -> str:
        incoming = request.get_header("x-request-id")
        if incoming and _REQUEST_ID_PATTERN.match(incoming):
            return incoming
        return uuid.uuid4().hex[:8]


def _query_string(request: HTTPRequest) -> str:
    return "&".join(
        f"{name}={value}"
        for name, values in request.query_params.items()
        for value in values
    )


def _content_length(response: HTTPResponse) -> int:
    """Declared Content-Length (HEAD responses carry no body) or body size."""
    declared = response.get_header("Content-Length")
    if declared is not None and declared.isdigit():
        return int(declared)
    return len(response.body)
