"""
=============================================================================
CHIRPY CLI ENTRY POINT
=============================================================================

    python -m chirpy                         # 0.0.0.0:8080, static root "."
    python -m chirpy --port 3000
    python -m chirpy --static-dir ./public --log-format json
    chirpy --shutdown-timeout 10             # console script

Configuration precedence, highest first:

    CLI flags  >  CHIRPY_* environment  >  ServerConfig defaults

=============================================================================
SIGNALS AND EXIT CODES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   main thread                       server thread                    │
    │   ───────────                       ─────────────                    │
    │   install SIGINT/SIGTERM            server.run()  (accept loop)      │
    │   wait for stop ◄──── signal                                         │
    │   server.shutdown(timeout) ───────► run() returns                    │
    │                                                                      │
    │   exit 0   all in-flight requests finished before the deadline       │
    │   exit 1   bind/accept failure, bad config, or deadline exceeded     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only the first signal starts a graceful shutdown; the previous handlers
are restored, so a second Ctrl+C interrupts the wait.

=============================================================================
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import ServerConfig


logger = logging.getLogger("chirpy")


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chirpy",
        description="Chirpy: static files, hit metrics and chirp validation over HTTP/1.1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m chirpy                          # Run with defaults
  python -m chirpy --port 3000              # Custom port
  python -m chirpy --static-dir ./public    # Serve ./public under /app/
  python -m chirpy --log-format json        # One JSON object per request
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--host", "-H", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    parser.add_argument("--workers", "-w", type=int, help="Maximum worker threads (default: 64)")

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--static-dir", "-s",
        help="Directory served at / and /app/ (default: current directory)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        help="Seconds to wait for in-flight requests on SIGINT/SIGTERM (default: 5)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Access log format (default: text)",
    )

    parser.add_argument("--version", "-v", action="version", version=f"Chirpy {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Environment first, then every flag that was actually given.

    Raises:
        ValueError: If an environment value does not parse, or the result
                    fails validation.
    """
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.static_dir is not None:
        config.static_dir = args.static_dir
    if args.shutdown_timeout is not None:
        config.shutdown_timeout = args.shutdown_timeout
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    config.validate()
    return config


def setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger("chirpy").setLevel(level)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the server until a signal arrives. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level)

    try:
        server = create_app(config)
    except ValueError as e:
        logger.error(f"Cannot start: {e}")
        return 1

    # ─────────────────────────────────────────────────────────────────────
    # SERVE IN THE BACKGROUND, WAIT FOR A SIGNAL IN THE FOREGROUND
    # ─────────────────────────────────────────────────────────────────────
    stop = threading.Event()
    failures: List[OSError] = []

    def serve():
        try:
            server.run()
        except OSError as e:
            failures.append(e)
        finally:
            stop.set()

    def on_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        stop.set()

    previous = {
        sig: signal.signal(sig, on_signal)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }

    server_thread = threading.Thread(target=serve, name="chirpy-server", daemon=True)
    server_thread.start()

    try:
        while not stop.wait(0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if failures:
        logger.error(f"Server failed: {failures[0]}")
        server.shutdown(0)
        return 1

    drained = server.shutdown(config.shutdown_timeout)
    server_thread.join(timeout=config.shutdown_timeout)
    return 0 if drained else 1


if __name__ == "__main__":
    sys.exit(main())
