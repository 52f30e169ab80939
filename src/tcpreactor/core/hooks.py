"""
=============================================================================
SERVER HOOKS
=============================================================================

The capability set an application plugs into the event loop.

Instead of subclassing the server and overriding methods, the application
hands the loop a ServerHooks value. Only the data handler is mandatory;
every other hook has an explicit default below.

    ┌───────────────────────────┬──────────────────────────────────────────┐
    │ Hook                      │ Called when                              │
    ├───────────────────────────┼──────────────────────────────────────────┤
    │ handle_received_data      │ a client sent bytes                      │
    │ should_accept_connection  │ a client was just accepted               │
    │ will_close_connection     │ right before a client socket is closed   │
    │ on_error                  │ establishment failure, backlog exhausted │
    └───────────────────────────┴──────────────────────────────────────────┘

DATA HANDLER RESULT:

    False                          → close the connection, no reply
    bytes / bytearray / memoryview → send it back, keep the connection
    anything else (None, True, …)  → keep the connection, no reply

Hooks run on the loop thread and must not block for long: while a hook
runs, no other client is served.

=============================================================================
"""

import socket
from dataclasses import dataclass
from typing import Callable

from .connection_table import PeerInfo
from ..errors import ErrorCode


# False closes, bytes-like is sent back, any other object keeps the connection open
HandlerResult = object

DataHandler = Callable[[bytes, PeerInfo], HandlerResult]
AdmissionPolicy = Callable[[PeerInfo], bool]
CloseListener = Callable[[PeerInfo, socket.socket], None]
ErrorSink = Callable[[ErrorCode, str], None]


def accept_all(peer: PeerInfo) -> bool:
    """Default admission policy: every client is welcome."""
    return True


def ignore_close(peer: PeerInfo, sock: socket.socket) -> None:
    """Default close notification: nothing to do."""


def ignore_error(code: ErrorCode, message: str) -> None:
    """Default error sink. The loop logs every condition itself."""


@dataclass
class ServerHooks:
    """Application callbacks used by the event loop."""

    handle_received_data: DataHandler
    should_accept_connection: AdmissionPolicy = accept_all
    will_close_connection: CloseListener = ignore_close
    on_error: ErrorSink = ignore_error
