"""
=============================================================================
APPLICATION WIRING
=============================================================================

Builds the Chirpy server: one HTTPServer, one ApiConfig, every route.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   LoggingMiddleware (global)                                         │
    │        │                                                             │
    │        ▼                                                             │
    │   Router                                                             │
    │    ├── /                    Guard(GET)   → home document             │
    │    ├── /app/*path           Metrics      → static files              │
    │    ├── /app                 Metrics      → 301 /app/                 │
    │    ├── /api/healthz         Guard(GET)   → "OK"                      │
    │    ├── /api/validate_chirp  Guard(POST)  → chirp validator           │
    │    ├── /metrics             Guard(GET)   → "Hits: n"                 │
    │    └── /reset               Guard(POST)  → counter = 0               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every route is registered without a router-level method: the MethodGuard
(or the static handler) owns the 405, so Allow is always exactly the one
method the endpoint takes.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .config import ServerConfig
from .handlers import (
    HomeHandler, MetricsHandler, StaticFileHandler,
    health, validate_chirp_handler,
)
from .http import HTTPRequest, HTTPResponse, redirect
from .metrics import HitCounter
from .middleware import LoggingMiddleware, MetricsMiddleware, method_guard
from .server import HTTPServer


logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    """
    Shared application state handed to the middleware and handlers that
    need it. The hit counter is the only mutable part.
    """

    hits: HitCounter = field(default_factory=HitCounter)


def create_app(
    config: Optional[ServerConfig] = None,
    api_config: Optional[ApiConfig] = None,
) -> HTTPServer:
    """
    Build a ready-to-run Chirpy server.

        server = create_app(ServerConfig(port=8080, static_dir="./public"))
        server.run()

    Args:
        config: Server configuration (defaults if omitted).
        api_config: Shared state; a fresh counter if omitted.

    Returns:
        The HTTPServer, with the ApiConfig reachable as server.api_config.

    Raises:
        ValueError: If the configuration is invalid or static_dir is not
                    a directory.
    """
    config = config or ServerConfig()
    api_config = api_config or ApiConfig()

    server = HTTPServer(config)
    server.api_config = api_config
    server.use(LoggingMiddleware(log_format=config.log_format))

    counted = MetricsMiddleware(api_config)
    admin = MetricsHandler(api_config)
    static = StaticFileHandler(
        config.static_dir,
        url_prefix=config.app_prefix,
        index_file=config.home_file,
    )
    home = HomeHandler(os.path.join(config.static_dir, config.home_file))

    prefix = config.app_prefix.rstrip("/")

    def app_root(request: HTTPRequest) -> HTTPResponse:
        return redirect(f"{prefix}/", permanent=True)

    router = server.router
    router.add_route("/", method_guard("GET", home.handle), name="home")
    router.add_route(f"{prefix}/*path", counted.wrap(static.handle), name="app")
    router.add_route(prefix, counted.wrap(app_root), name="app_root")
    router.add_route("/api/healthz", method_guard("GET", health), name="healthz")
    router.add_route(
        "/api/validate_chirp",
        method_guard("POST", validate_chirp_handler),
        name="validate_chirp",
    )
    router.add_route("/metrics", method_guard("GET", admin.metrics), name="metrics")
    router.add_route("/reset", method_guard("POST", admin.reset), name="reset")

    logger.debug(f"Registered {len(router.routes())} routes, static root {static.root_dir}")
    return server
