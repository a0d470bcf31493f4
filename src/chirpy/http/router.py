"""
=============================================================================
URL ROUTER
=============================================================================

Path-based routing with support for:
- Static paths: /api/healthz, /metrics
- Dynamic parameters: /users/:id
- Wildcard paths: /app/*path
- Optional method filtering per route

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Incoming Request                                                   │
    │   POST /api/validate_chirp                                           │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER  (first registered match wins)                       │   │
    │   │                                                              │   │
    │   │  ANY  /                    → home                            │   │
    │   │  ANY  /app/*path           → metrics(static)                 │   │
    │   │  ANY  /app                 → redirect to /app/               │   │
    │   │  ANY  /api/healthz         → guard(GET, health)              │   │
    │   │  ANY  /api/validate_chirp  → guard(POST, chirp) ← MATCH!     │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request)                                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Routes registered WITHOUT a method accept every method; the handler (or
a MethodGuard around it) decides. Routes WITH a method get the router's
own 405 when only the method is wrong.

=============================================================================
ROUTE PATTERNS
=============================================================================

    Pattern:  /users/:id            Regex: ^/users/(?P<id>[^/]+)$
    Pattern:  /app/*path            Regex: ^/app/(?P<path>.*)$
    Pattern:  /                     Regex: ^/$

Matching is exact: "/metrics/" does NOT match "/metrics". That keeps
"/app" and "/app/" distinct, which the static tree relies on.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


# Handler: takes a request, returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(
            path="/app/*path",       # URL pattern
            method=None,             # None = any method
            handler=static_handler,
            _pattern=<compiled>,
            _param_names=["path"],
        )
    """

    path: str
    method: Optional[str]
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """A successful match: the route plus extracted path parameters."""
    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router.

    ==========================================================================
    DECORATOR-BASED API
    ==========================================================================

        router = Router()

        @router.get("/api/healthz")
        def health(request):
            return ok("OK")

        router.add_route("/app/*path", static_handler)

    ==========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern (e.g., /users/:id, /app/*path)
            handler: Function taking a request and returning a response
            method: HTTP method, or None for any method
            name: Optional route name (shown in logs)

        Returns:
            The registered Route
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a path pattern into an anchored regex.

            ""        → skipped
            "users"   → /users               (static, re.escape'd)
            ":id"     → /(?P<id>[^/]+)       (one segment)
            "*path"   → /(?P<path>.*)        (rest of the path, may be empty)
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")

            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break  # Wildcard consumes everything

            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # The root pattern "/"

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Returns:
            RouteMatch if found, None otherwise
        """
        method = method.upper()
        for route in self._routes:
            if route.method and route.method != method:
                continue

            match = route._pattern.match(path)
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path, for the Allow header of a 405."""
        return sorted({
            route.method
            for route in self._routes
            if route.method and route._pattern.match(path)
        })

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request.

        1. Matching route → call its handler with path_params set
        2. Path known under other methods → 405 with Allow
        3. Otherwise → 404 {"error": "Not Found"}
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found()

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator for registering routes.

            @router.route("/reset", method="POST")
            def reset(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler  # Unchanged, so decorators stack
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name)

    def routes(self) -> List[Route]:
        """All registered routes, in match order."""
        return list(self._routes)
