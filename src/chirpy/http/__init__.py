"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

Turns the bytes a Connection reads into HTTPRequest objects, routes them,
and turns HTTPResponse objects back into bytes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes → HTTPRequest (HTTPParseError on junk)   │
    │ router.py        HTTPRequest → handler, 404 / 405 otherwise         │
    │ response.py      HTTPResponse, ResponseBuilder, ok/not_found/...    │
    │ status_codes.py  HTTPStatus with reason phrases                     │
    │ mime_types.py    file extension → Content-Type                      │
    └─────────────────────────────────────────────────────────────────────┘

HTTP MESSAGE FORMAT (RFC 7230)

    REQUEST:                          RESPONSE:
    GET /path HTTP/1.1\\r\\n            HTTP/1.1 200 OK\\r\\n
    Header: Value\\r\\n                 Header: Value\\r\\n
    \\r\\n                              \\r\\n
    [body]                            [body]

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    ok,
    redirect,
    error_response,
    bad_request,
    forbidden,
    not_found,
    method_not_allowed,
    internal_error,
)
from .router import Router, Route, Handler
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",

    "ok",
    "redirect",
    "error_response",
    "bad_request",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "Router",
    "Route",
    "Handler",

    "HTTPStatus",

    "get_mime_type",
    "get_content_type",
]
