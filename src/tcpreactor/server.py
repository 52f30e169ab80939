"""
=============================================================================
REACTOR SERVER
=============================================================================

The orchestrator: picks a socket provider from the configuration, sets up
logging, and runs the event loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     REACTOR SERVER ARCHITECTURE                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │  ReactorServer  │                          │
    │                        │  (Orchestrator) │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │SocketProvider│    │  EventLoop   │    │ ServerHooks  │        │
    │    │  (listener)  │    │  (reactor)   │    │(application) │        │
    │    └──────────────┘    └──────┬───────┘    └──────────────┘        │
    │                               │                                      │
    │              ┌────────────────┼────────────────┐                     │
    │              ▼                ▼                ▼                     │
    │      ┌──────────────┐ ┌──────────────┐ ┌──────────────────┐         │
    │      │ConnectionTbl │ │  Byte pump   │ │ShutdownController│         │
    │      └──────────────┘ └──────────────┘ └──────────────────┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
from typing import Optional

from .config import ServerConfig
from .core import (
    EventLoop,
    ServerHooks,
    SocketProvider,
    TCPSocketProvider,
    UnixSocketProvider,
)
from .core.hooks import DataHandler


logger = logging.getLogger(__name__)


class ReactorServer:
    """
    Reactor-style TCP server.

    Usage:
        def handle(data, peer):
            if data.strip() == b"bye":
                return False        # close
            return b"echo: " + data  # reply

        server = ReactorServer(ServerHooks(handle_received_data=handle))
        server.run()  # blocks; Ctrl+C drains clients and exits
    """

    def __init__(
        self,
        hooks: ServerHooks,
        config: Optional[ServerConfig] = None,
        provider: Optional[SocketProvider] = None,
    ):
        """
        Initialize the server.

        Args:
            hooks: Application callbacks.
            config: Server configuration. Uses defaults if not provided.
            provider: Listening socket provider. Derived from config
                      (unix_path, else host/port) if not provided.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.hooks = hooks
        self.provider = provider or self._default_provider()
        self._loop = EventLoop(self.provider, self.hooks, self.config)

    def _default_provider(self) -> SocketProvider:
        if self.config.unix_path:
            return UnixSocketProvider(self.config.unix_path)
        return TCPSocketProvider(self.config.host, self.config.port)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def loop(self) -> EventLoop:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    @property
    def address(self):
        """Bound address of the listening socket while running."""
        return self._loop.bound_address

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Start the server (blocking).

        Returns only if the listening socket could not be established, or
        after a shutdown when config.exit_on_shutdown is False.
        """
        self._setup_logging()
        logger.info(f"Starting reactor server on {self.provider.description}")
        self._loop.run()

    def shutdown(self) -> None:
        """Request a graceful shutdown (thread-safe)."""
        self._loop.shutdown()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._loop.wait_until_listening(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("tcpreactor").setLevel(level)


def create_server(
    handler: DataHandler,
    config: Optional[ServerConfig] = None,
    **hooks,
) -> ReactorServer:
    """
    Build a ReactorServer around a bare data handler.

    Extra keyword arguments are passed to ServerHooks
    (should_accept_connection, will_close_connection, on_error).

    Example:
        server = create_server(lambda data, peer: data, ServerConfig(port=9000))
        server.run()
    """
    return ReactorServer(ServerHooks(handle_received_data=handler, **hooks), config)
