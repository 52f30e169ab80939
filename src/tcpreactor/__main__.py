"""
=============================================================================
REACTOR SERVER CLI ENTRY POINT
=============================================================================

Runs the echo handler on the reactor, mostly for trying the event loop out
by hand with nc / telnet.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (127.0.0.1:8080, 10 slots)
    python -m tcpreactor

    # Custom port and slot count
    python -m tcpreactor --port 9000 --backlog 2

    # Wake up every half second even when idle
    python -m tcpreactor --timeout 0.5

    # Listen on a Unix socket next to the working directory
    python -m tcpreactor --unix ./echo.sock

    # Then, from another terminal:
    nc 127.0.0.1 9000

Environment variables (REACTOR_*) provide the defaults, flags override them.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .errors import ConfigError
from .handlers import EchoHandler
from .server import ReactorServer


def build_parser() -> argparse.ArgumentParser:
    defaults = ServerConfig.from_env()

    parser = argparse.ArgumentParser(
        prog="tcpreactor",
        description="Single-threaded reactor TCP server running an echo handler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tcpreactor                       # 127.0.0.1:8080
  python -m tcpreactor --port 9000 -b 2      # two client slots
  python -m tcpreactor --unix ./echo.sock    # Unix-domain socket
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # LISTENING SOCKET
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    parser.add_argument(
        "--unix", "-u",
        default=defaults.unix_path,
        metavar="PATH",
        help="Listen on a Unix-domain socket instead of host/port"
    )

    # ─────────────────────────────────────────────────────────────────────
    # EVENT LOOP
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--backlog", "-b",
        type=int,
        default=defaults.backlog,
        help=f"Maximum simultaneous clients (default: {defaults.backlog})"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=defaults.poll_timeout,
        help="Poll timeout in seconds (default: wait indefinitely)"
    )

    parser.add_argument(
        "--read-chunk",
        type=int,
        default=defaults.read_chunk_size,
        help=f"Bytes per recv() (default: {defaults.read_chunk_size})"
    )

    parser.add_argument(
        "--write-chunk",
        type=int,
        default=defaults.write_chunk_size,
        help=f"Bytes per send() (default: {defaults.write_chunk_size})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tcpreactor {__version__}"
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    try:
        parser = build_parser()
    except ValueError as e:
        # A REACTOR_* variable that does not parse as a number
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        sys.exit(2)

    args = parser.parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        unix_path=args.unix,
        backlog=args.backlog,
        poll_timeout=args.timeout,
        read_chunk_size=args.read_chunk,
        write_chunk_size=args.write_chunk,
        log_level=args.log_level,
    )

    try:
        server = ReactorServer(EchoHandler().hooks(), config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    # Blocks until SIGTERM/SIGINT, which exits the process with status 0.
    # Getting past run() means the listening socket was never established.
    server.run()
    sys.exit(1)


if __name__ == "__main__":
    main()
