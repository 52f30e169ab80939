"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the reactor server.

One ServerConfig is handed to the event loop and read, never written, for
the lifetime of a single run(). Everything the loop needs to size its
connection table, bound its readiness wait and chunk its I/O lives here.

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
    │      └── python -m tcpreactor --backlog 32                         │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── REACTOR_BACKLOG=32 python -m tcpreactor                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError


@dataclass
class ServerConfig:
    """
    Configuration for the reactor server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    EVENT LOOP
    - backlog, poll_timeout, read_chunk_size, write_chunk_size

    LISTENING SOCKET
    - host, port, unix_path

    PROCESS
    - log_level, exit_on_shutdown, install_signal_handlers

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # EVENT LOOP
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 10
    """
    Number of connection slots, and the listen() queue length.
    A connection arriving while every slot is busy is refused.
    """

    poll_timeout: Optional[float] = None
    """
    Upper bound in seconds for one readiness wait.
    None = wait until something happens.
    """

    read_chunk_size: int = 2048
    """Bytes requested per recv() call."""

    write_chunk_size: int = 2048
    """Bytes offered per send() call."""

    # ─────────────────────────────────────────────────────────────────────
    # LISTENING SOCKET
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080

    unix_path: Optional[str] = None
    """
    Path of a Unix-domain socket to listen on instead of host/port.
    Relative paths ("./x", "../x") are resolved against the working directory.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PROCESS
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    exit_on_shutdown: bool = True
    """
    Exit the process with status 0 once a shutdown has drained all
    connections. When False, run() returns instead (embedding, tests).
    """

    install_signal_handlers: bool = True
    """Catch SIGTERM and SIGINT (main thread only)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        REACTOR_HOST          Listening host (default: 127.0.0.1)
        REACTOR_PORT          Listening port (default: 8080)
        REACTOR_UNIX_PATH     Unix socket path (default: None)
        REACTOR_BACKLOG       Connection slots (default: 10)
        REACTOR_POLL_TIMEOUT  Readiness wait in seconds (default: None)
        REACTOR_READ_CHUNK    recv() size (default: 2048)
        REACTOR_WRITE_CHUNK   send() size (default: 2048)
        REACTOR_LOG_LEVEL     Logging level (default: INFO)

        =====================================================================
        """
        poll_timeout = os.getenv("REACTOR_POLL_TIMEOUT")
        return cls(
            host=os.getenv("REACTOR_HOST", "127.0.0.1"),
            port=int(os.getenv("REACTOR_PORT", "8080")),
            unix_path=os.getenv("REACTOR_UNIX_PATH"),
            backlog=int(os.getenv("REACTOR_BACKLOG", "10")),
            poll_timeout=float(poll_timeout) if poll_timeout else None,
            read_chunk_size=int(os.getenv("REACTOR_READ_CHUNK", "2048")),
            write_chunk_size=int(os.getenv("REACTOR_WRITE_CHUNK", "2048")),
            log_level=os.getenv("REACTOR_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the server before anything touches a socket, so a bad
        value fails at startup instead of in the middle of the loop.
        """
        if self.backlog < 1:
            raise ConfigError(f"backlog must be >= 1, got {self.backlog}")

        if self.poll_timeout is not None and self.poll_timeout < 0:
            raise ConfigError(f"poll_timeout must be >= 0, got {self.poll_timeout}")

        if self.read_chunk_size < 1:
            raise ConfigError(f"read_chunk_size must be >= 1, got {self.read_chunk_size}")

        if self.write_chunk_size < 1:
            raise ConfigError(f"write_chunk_size must be >= 1, got {self.write_chunk_size}")

        if self.unix_path is None and not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")
