"""
Echo handler.

The reference application for the reactor: sends every payload straight
back and hangs up when the client says ``quit``. It also keeps a per-peer
message count in ``peer.tags``, which shows how handlers carry state on a
connection without a table of their own.
"""

import logging
import socket

from ..core.connection_table import PeerInfo
from ..core.hooks import ServerHooks
from ..errors import ErrorCode


logger = logging.getLogger(__name__)


class EchoHandler:
    """
    Echo every message back to its sender.

    Usage:
        handler = EchoHandler()
        server = ReactorServer(handler.hooks())
    """

    def __init__(self, quit_command: bytes = b"quit", prefix: bytes = b""):
        self.quit_command = quit_command
        self.prefix = prefix
        self.connections_seen = 0
        self.messages_echoed = 0

    def handle(self, data: bytes, peer: PeerInfo):
        """Return the payload (with prefix), or False on the quit command."""
        if data.strip() == self.quit_command:
            logger.debug(f"{peer} asked to quit")
            return False

        peer.tags["messages"] = peer.tags.get("messages", 0) + 1
        self.messages_echoed += 1
        return self.prefix + data

    def on_connect(self, peer: PeerInfo) -> bool:
        self.connections_seen += 1
        peer.tags["messages"] = 0
        return True

    def on_close(self, peer: PeerInfo, sock: socket.socket) -> None:
        logger.info(f"{peer} disconnected after {peer.tags.get('messages', 0)} message(s)")

    def on_error(self, code: ErrorCode, message: str) -> None:
        logger.warning(f"{code.name} ({int(code)}): {message}")

    def hooks(self) -> ServerHooks:
        """Bundle this handler's callbacks for the event loop."""
        return ServerHooks(
            handle_received_data=self.handle,
            should_accept_connection=self.on_connect,
            will_close_connection=self.on_close,
            on_error=self.on_error,
        )
