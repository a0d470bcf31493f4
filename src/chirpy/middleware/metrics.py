"""
=============================================================================
METRICS MIDDLEWARE
=============================================================================

Counts every request that reaches the wrapped handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GET /app/logo.png                                                  │
    │        │                                                             │
    │        ▼                                                             │
    │   MetricsMiddleware ── hits.increment() ──► static handler          │
    │                                                                      │
    │   GET /metrics  ──►  "Hits: 1"                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The increment happens BEFORE delegating, so a request is counted even if
the handler raises or answers with an error.

=============================================================================
"""

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


class MetricsMiddleware(Middleware):
    """
    Increment the api_config hit counter, then delegate.

        counted = MetricsMiddleware(api_config).wrap(static_handler)

    Args:
        api_config: Any object with a `hits` HitCounter (normally ApiConfig).
    """

    def __init__(self, api_config):
        self.api_config = api_config

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        self.api_config.hits.increment()
        return next(request)
