"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the Chirpy server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m chirpy --port 3000                              │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── CHIRPY_PORT=3000 python -m chirpy                         │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TIMEOUTS
=============================================================================

Three independent clocks protect every connection:

    read_timeout    How long a client may take to send ONE request.
                    Slowloris-style clients that dribble bytes are cut off.

    write_timeout   How long sending ONE response may take.
                    A client that stops reading can't pin a worker forever.

    idle_timeout    How long a keep-alive connection may sit between
                    requests before we close it.

=============================================================================
"""

import os
from dataclasses import dataclass


@dataclass
class ServerConfig:
    """
    Configuration for the Chirpy HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size
    TIMEOUTS    read_timeout, write_timeout, idle_timeout
    HTTP        keep_alive, max_request_size
    THREADING   min_workers, max_workers, queue_size
    CONTENT     static_dir, home_file, app_prefix
    LIFECYCLE   shutdown_timeout
    LOGGING     log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All network interfaces
    - "127.0.0.1" - Localhost only (tests, development)
    """

    port: int = 8080
    """
    The port number to listen on. 0 asks the OS for a free port,
    which is what the test-suite does.
    """

    backlog: int = 128
    """Maximum number of queued connections before new ones are refused."""

    buffer_size: int = 8192
    """Size of each recv() chunk in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS
    # ─────────────────────────────────────────────────────────────────────

    read_timeout: float = 5.0
    """Seconds allowed to read a complete request."""

    write_timeout: float = 10.0
    """Seconds allowed to write a complete response."""

    idle_timeout: float = 120.0
    """Seconds a keep-alive connection may wait for its next request."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow multiple requests on the same TCP connection."""

    max_request_size: int = 1024 * 1024  # 1 MiB
    """
    Maximum request size (headers + body) in bytes.
    Chirps are 140 characters; anything near this limit is abuse.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 64
    """
    Upper bound on worker threads.
    A keep-alive connection holds a worker while idle, so this is
    effectively the number of concurrent clients.
    """

    queue_size: int = 128
    """Accepted connections waiting for a worker. Overflow gets 503."""

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    static_dir: str = "."
    """Directory served under app_prefix; also holds the home document."""

    home_file: str = "index.html"
    """Document served at "/"."""

    app_prefix: str = "/app"
    """URL prefix of the static file tree."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: float = 5.0
    """Grace period given to in-flight requests on SIGINT/SIGTERM."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "Chirpy/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        CHIRPY_HOST              Bind address (default: 0.0.0.0)
        CHIRPY_PORT              Port (default: 8080)
        CHIRPY_WORKERS           Max worker threads (default: 64)
        CHIRPY_STATIC_DIR        Static root (default: .)
        CHIRPY_READ_TIMEOUT      Seconds (default: 5)
        CHIRPY_WRITE_TIMEOUT     Seconds (default: 10)
        CHIRPY_IDLE_TIMEOUT      Seconds (default: 120)
        CHIRPY_SHUTDOWN_TIMEOUT  Seconds (default: 5)
        CHIRPY_LOG_LEVEL         Logging level (default: INFO)
        CHIRPY_LOG_FORMAT        text | json (default: text)

        =====================================================================
        """
        defaults = cls()
        max_workers = int(os.getenv("CHIRPY_WORKERS", str(defaults.max_workers)))
        return cls(
            host=os.getenv("CHIRPY_HOST", defaults.host),
            port=int(os.getenv("CHIRPY_PORT", str(defaults.port))),
            min_workers=min(defaults.min_workers, max_workers),
            max_workers=max_workers,
            static_dir=os.getenv("CHIRPY_STATIC_DIR", defaults.static_dir),
            read_timeout=float(os.getenv("CHIRPY_READ_TIMEOUT", str(defaults.read_timeout))),
            write_timeout=float(os.getenv("CHIRPY_WRITE_TIMEOUT", str(defaults.write_timeout))),
            idle_timeout=float(os.getenv("CHIRPY_IDLE_TIMEOUT", str(defaults.idle_timeout))),
            shutdown_timeout=float(
                os.getenv("CHIRPY_SHUTDOWN_TIMEOUT", str(defaults.shutdown_timeout))
            ),
            log_level=os.getenv("CHIRPY_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("CHIRPY_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer.__init__ so a bad value fails at startup,
        not on the first request.

        Raises:
            ValueError: If any value is out of range.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        for name in ("read_timeout", "write_timeout", "idle_timeout", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format!r}")

        if not self.app_prefix.startswith("/") or self.app_prefix == "/":
            raise ValueError("app_prefix must start with '/' and name a path below the root")
