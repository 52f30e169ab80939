"""
=============================================================================
TCPREACTOR - Single-Threaded Reactor TCP Server Core
=============================================================================

One listening socket, a fixed number of client slots, one selector, and an
application handler that decides per message whether to reply, stay quiet
or hang up.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tcpreactor/
    ├── __init__.py              # This file - package exports
    ├── __main__.py              # CLI entry point (python -m tcpreactor)
    ├── server.py                # ReactorServer orchestrator
    ├── config.py                # ServerConfig dataclass
    ├── errors.py                # ErrorCode and exceptions
    ├── core/
    │   ├── event_loop.py        # Selector loop, accept, dispatch
    │   ├── connection_table.py  # Fixed-capacity client slots
    │   ├── byte_pump.py         # Chunked read/write
    │   ├── hooks.py             # ServerHooks capability set
    │   ├── shutdown.py          # Signals, wakeup channel, draining
    │   └── socket_provider.py   # TCP / Unix listening sockets
    └── handlers/
        └── echo.py              # Reference echo application

=============================================================================
QUICK START
=============================================================================

    from tcpreactor import ReactorServer, ServerConfig, ServerHooks

    def handle(data, peer):
        if data.strip() == b"die":
            return False          # close this client
        if data.strip() == b"ping":
            return b"pong"        # reply
        return None               # keep open, say nothing

    server = ReactorServer(
        ServerHooks(handle_received_data=handle),
        ServerConfig(port=9000, backlog=2),
    )
    server.run()   # Ctrl+C closes every client, then the process exits

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .errors import ErrorCode, ReactorError, ConfigError, ConnectionTableError
from .core import (
    EventLoop,
    LoopState,
    ConnectionTable,
    PeerInfo,
    ServerHooks,
    SocketProvider,
    TCPSocketProvider,
    UnixSocketProvider,
)
from .server import ReactorServer, create_server

__all__ = [
    "ReactorServer",
    "create_server",
    "ServerConfig",
    "ServerHooks",
    "EventLoop",
    "LoopState",
    "ConnectionTable",
    "PeerInfo",
    "SocketProvider",
    "TCPSocketProvider",
    "UnixSocketProvider",
    "ErrorCode",
    "ReactorError",
    "ConfigError",
    "ConnectionTableError",
    "__version__",
]
