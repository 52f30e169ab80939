"""
=============================================================================
CORE REACTOR COMPONENTS
=============================================================================

The pieces the event loop is built from, leaves first:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET PROVIDER     creates/binds/closes the listening socket      │
    │  CONNECTION TABLE    fixed slots of (client socket, peer info)      │
    │  BYTE PUMP           chunked read_chunked() / write_chunked()       │
    │  SERVER HOOKS        admission, data handler, close & error sinks   │
    │  SHUTDOWN            signals → wakeup socket → drain and exit       │
    │  EVENT LOOP          selector wait, accept, service, dispatch       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection_table import ConnectionTable, PeerInfo, Slot
from .byte_pump import read_chunked, write_chunked
from .socket_provider import (
    SocketProvider,
    TCPSocketProvider,
    UnixSocketProvider,
    resolve_path,
)
from .hooks import ServerHooks
from .shutdown import ShutdownController
from .event_loop import EventLoop, LoopState

__all__ = [
    "ConnectionTable",
    "PeerInfo",
    "Slot",
    "read_chunked",
    "write_chunked",
    "SocketProvider",
    "TCPSocketProvider",
    "UnixSocketProvider",
    "resolve_path",
    "ServerHooks",
    "ShutdownController",
    "EventLoop",
    "LoopState",
]
