"""
=============================================================================
ADMIN ENDPOINTS
=============================================================================

Read and reset the hit counter.

    GET  /metrics   →  200  "Hits: 42"   (text/plain; charset=utf-8)
    POST /reset     →  200  (empty body), counter back to 0

Both are wrapped in a MethodGuard by the app, so these handlers never see
the wrong method.

=============================================================================
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok


logger = logging.getLogger(__name__)


class MetricsHandler:
    """
    Endpoints over the counter owned by an ApiConfig.

        admin = MetricsHandler(api_config)
        router.add_route("/metrics", method_guard("GET", admin.metrics))
        router.add_route("/reset", method_guard("POST", admin.reset))
    """

    def __init__(self, api_config):
        self.api_config = api_config

    def metrics(self, request: HTTPRequest) -> HTTPResponse:
        return ok(f"Hits: {self.api_config.hits.read()}")

    def reset(self, request: HTTPRequest) -> HTTPResponse:
        self.api_config.hits.reset()
        logger.info("Hit counter reset")
        return ok()
