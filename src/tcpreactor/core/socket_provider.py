"""
=============================================================================
LISTENING SOCKET PROVIDERS
=============================================================================

The event loop never creates its own listening socket. It asks a provider
for one, calls listen() on it, and gives it back to the provider to close.

    ┌──────────────────┐  establish()   ┌──────────────┐
    │  SocketProvider  │ ─────────────► │  EventLoop   │
    │                  │ ◄───────────── │              │
    └──────────────────┘  close(sock)   └──────────────┘

establish() returns a BOUND socket that is not yet listening; the loop owns
the backlog. Returning None or raising OSError both mean "no socket", which
the loop reports as a socket-establishment error.

Two concrete providers ship with the package:

    TCPSocketProvider    AF_INET, host:port
    UnixSocketProvider   AF_UNIX, filesystem path

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:  bind again right after a restart instead of waiting out
               TIME_WAIT ("Address already in use").
SO_REUSEPORT:  several processes may share the port (not on Windows).
TCP_NODELAY:   replies go out immediately instead of waiting for Nagle's
               algorithm to coalesce small writes.

=============================================================================
"""

import logging
import os
import socket
import stat
from abc import ABC, abstractmethod
from typing import Optional


logger = logging.getLogger(__name__)


def resolve_path(path: str, cwd: Optional[str] = None) -> str:
    """
    Resolve a socket path the way the command line means it.

        /run/app.sock    → unchanged (absolute)
        ./app.sock       → <cwd>/app.sock
        ../app.sock      → <parent of cwd>/app.sock
        app.sock         → unchanged

    Args:
        path: Path as given by the user.
        cwd: Working directory to resolve against (default: os.getcwd()).
    """
    if not path:
        return path
    if path.startswith("/"):
        return path

    base = cwd if cwd is not None else os.getcwd()
    if path.startswith("./"):
        return os.path.join(base, path[2:])
    if path.startswith("../"):
        return os.path.join(os.path.dirname(base), path[3:])
    return path


class SocketProvider(ABC):
    """Creates and tears down the listening socket for an event loop."""

    @abstractmethod
    def establish(self) -> Optional[socket.socket]:
        """
        Create and bind the listening socket.

        Returns:
            A bound socket, or None if one could not be created.

        Raises:
            OSError: Creating or binding the socket failed.
        """

    def close(self, sock: socket.socket) -> None:
        """Close a socket previously returned by establish()."""
        try:
            sock.close()
        except OSError as e:
            logger.debug(f"Closing listening socket failed: {e}")

    @property
    def description(self) -> str:
        """Human-readable address for log lines."""
        return self.__class__.__name__


class TCPSocketProvider(SocketProvider):
    """
    Listening socket on an IPv4 host and port.

    Port 0 lets the OS pick a free port; the chosen one is available from
    the socket's getsockname() once establish() returns.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8080):
        self.host = host
        self.port = port

    @property
    def description(self) -> str:
        return f"{self.host}:{self.port}"

    def establish(self) -> Optional[socket.socket]:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except (AttributeError, OSError):
                pass  # Not available on Windows

            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.host}:{self.port}: {e}")
            sock.close()
            raise

        return sock


class UnixSocketProvider(SocketProvider):
    """
    Listening socket on a Unix-domain path.

    A stale socket file left behind by a crashed process is removed before
    binding, and the file is removed again when the socket is closed. Only
    socket files are removed; anything else at the path makes bind() fail.
    """

    def __init__(self, path: str):
        self.path = resolve_path(path)

    @property
    def description(self) -> str:
        return f"unix:{self.path}"

    def establish(self) -> Optional[socket.socket]:
        self._unlink()
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        try:
            sock.bind(self.path)
        except OSError as e:
            logger.error(f"Failed to bind to {self.path}: {e}")
            sock.close()
            raise

        return sock

    def close(self, sock: socket.socket) -> None:
        super().close(sock)
        self._unlink()

    def _unlink(self) -> None:
        try:
            if not stat.S_ISSOCK(os.stat(self.path).st_mode):
                return
            os.unlink(self.path)
        except FileNotFoundError:
            pass
