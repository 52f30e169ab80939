"""
=============================================================================
REACTOR EVENT LOOP
=============================================================================

One thread, one listening socket, up to ``backlog`` clients, and a single
place where the thread ever waits: the selector.

=============================================================================
WHY A REACTOR?
=============================================================================

A thread-per-connection server parks one thread inside recv() for every
client. A reactor inverts that: it asks the OS which sockets are readable
RIGHT NOW, handles exactly those, and goes back to waiting.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ONE ITERATION                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   selector.select(poll_timeout)                                      │
    │        │   watches: listening socket, wakeup socket, every client    │
    │        ▼                                                             │
    │   shutdown requested? ──yes──► drain all, close listener, exit       │
    │        │ no                                                          │
    │        ▼                                                             │
    │   listener readable?  ──yes──► accept ONE client, end iteration      │
    │        │ no                                                          │
    │        ▼                                                             │
    │   for slot in ascending index order:                                 │
    │        if slot's socket is readable:                                 │
    │            data = read_chunked(sock)                                 │
    │            b""            → close slot (peer hung up)                │
    │            handler(data)  → False: close                             │
    │                           → bytes: write_chunked(reply)              │
    │                           → other: keep open                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only read-readiness is watched. Replies are written synchronously right
after the handler returns, on a blocking client socket.

=============================================================================
STATE MACHINE
=============================================================================

    INIT ──► LISTENING ──► READY_CHECK ──┬──► ACCEPTING ──┐
                 │              ▲        └──► SERVICING ──┤
                 │              └─────────────────────────┘
                 │                            │
                 └── establish() failed       └──► SHUTDOWN (signal only)

Nothing inside the loop ends it. Absent a shutdown request it runs forever.

=============================================================================
ORDERING
=============================================================================

Within an iteration the listening socket always comes first and clients are
served in ascending slot order. There is no fairness beyond that; since
every iteration re-polls all sockets, a busy low slot can only get ahead of
higher slots within a single pass.

=============================================================================
"""

import logging
import selectors
import socket
import threading
from enum import Enum
from typing import Callable, Optional

from ..config import ServerConfig
from ..errors import ErrorCode
from .byte_pump import read_chunked, write_chunked
from .connection_table import ConnectionTable, PeerInfo
from .hooks import ServerHooks
from .shutdown import ShutdownController
from .socket_provider import SocketProvider


logger = logging.getLogger(__name__)


# Selector key data for the two non-client sockets
_LISTENER = "listener"
_WAKEUP = "wakeup"

_REPLY_TYPES = (bytes, bytearray, memoryview)


class LoopState(Enum):
    """Event loop lifecycle states."""
    INIT = "init"                # Acquiring the listening socket
    LISTENING = "listening"      # Socket listening, loop about to start
    READY_CHECK = "ready_check"  # Blocked in selector.select()
    ACCEPTING = "accepting"      # Handling the listening socket
    SERVICING = "servicing"      # Reading from ready clients
    SHUTDOWN = "shutdown"        # Draining or drained; terminal


class EventLoop:
    """
    Single-threaded reactor serving up to ``config.backlog`` clients.

    Usage:
        hooks = ServerHooks(handle_received_data=lambda data, peer: data)
        loop = EventLoop(TCPSocketProvider("127.0.0.1", 9000), hooks)
        loop.run()  # blocks until SIGTERM/SIGINT or loop.shutdown()

    An EventLoop runs once. The connection table, the listening socket and
    the selector belong to it and are only touched from the thread inside
    run(); shutdown() is the one method meant to be called from elsewhere.
    """

    def __init__(
        self,
        provider: SocketProvider,
        hooks: ServerHooks,
        config: Optional[ServerConfig] = None,
        selector_factory: Callable[[], selectors.BaseSelector] = selectors.DefaultSelector,
    ):
        self.provider = provider
        self.hooks = hooks
        self.config = config or ServerConfig()

        self.table = ConnectionTable(self.config.backlog)

        self._selector_factory = selector_factory
        self._selector: Optional[selectors.BaseSelector] = None
        self._listening: Optional[socket.socket] = None
        self._shutdown = ShutdownController()

        self._state = LoopState.INIT
        self._started = False
        self._listening_event = threading.Event()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        """True between LISTENING and SHUTDOWN."""
        return self._state not in (LoopState.INIT, LoopState.SHUTDOWN)

    @property
    def bound_address(self):
        """Address the listening socket is bound to, or None."""
        if self._listening is None:
            return None
        return self._listening.getsockname()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the listening socket is accepting connections.

        Returns:
            True once listening, False on timeout.
        """
        return self._listening_event.wait(timeout)

    def shutdown(self) -> None:
        """
        Request a graceful shutdown.

        Thread-safe and idempotent. The loop notices at its next iteration
        boundary, even when blocked with poll_timeout=None.
        """
        self._shutdown.request()

    # =========================================================================
    # RUN
    # =========================================================================

    def run(self) -> None:
        """
        Serve clients until a shutdown is requested.

        Returns immediately after reporting SOCKET_ESTABLISHMENT if the
        provider has no socket to give. After a shutdown the process exits
        with status 0, unless config.exit_on_shutdown is False, in which
        case run() returns.
        """
        if self._started:
            raise RuntimeError("EventLoop.run() can only be called once")
        self._started = True
        self._state = LoopState.INIT

        if not self._establish():
            self._shutdown.close()
            return

        try:
            self._loop()
        finally:
            self._cleanup()

        if self.config.exit_on_shutdown and self._shutdown.is_requested:
            self._shutdown.exit(0)

    def _establish(self) -> bool:
        """INIT → LISTENING."""
        try:
            sock = self.provider.establish()
        except OSError as e:
            logger.error(f"Socket establishment failed: {e}")
            sock = None

        if sock is None:
            logger.error(f"No listening socket for {self.provider.description}")
            self._report(ErrorCode.SOCKET_ESTABLISHMENT, "No connection established")
            return False

        try:
            sock.listen(self.config.backlog)
            sock.setblocking(False)

            self._selector = self._selector_factory()
            self._selector.register(sock, selectors.EVENT_READ, _LISTENER)
            self._selector.register(self._shutdown.wakeup_socket, selectors.EVENT_READ, _WAKEUP)
        except OSError as e:
            logger.error(f"Cannot listen on {self.provider.description}: {e}")
            self.provider.close(sock)
            if self._selector is not None:
                self._selector.close()
                self._selector = None
            self._report(ErrorCode.SOCKET_ESTABLISHMENT, "No connection established")
            return False

        self._listening = sock

        if self.config.install_signal_handlers:
            self._shutdown.install()

        self._state = LoopState.LISTENING
        self._listening_event.set()
        logger.info(
            f"Listening on {self.provider.description} "
            f"(backlog={self.config.backlog}, poll_timeout={self.config.poll_timeout})"
        )
        return True

    def _loop(self) -> None:
        while True:
            self._state = LoopState.READY_CHECK
            events = self._selector.select(self.config.poll_timeout)

            if self._shutdown.is_requested:
                self._stop()
                return

            ready = {key.fileobj for key, _ in events}

            if self._listening in ready:
                self._state = LoopState.ACCEPTING
                self._accept()
                continue

            if not ready:
                continue  # Poll timeout

            self._state = LoopState.SERVICING
            for index, sock in self.table.occupied_sockets():
                if sock in ready:
                    self._service(index)

    # =========================================================================
    # ACCEPTING
    # =========================================================================

    def _accept(self) -> None:
        """Accept one pending connection into the lowest free slot."""
        try:
            client, address = self._listening.accept()
        except BlockingIOError:
            return  # Client gave up before we got to it
        except OSError as e:
            logger.warning(f"Accept error: {e}")
            return

        index = self.table.try_allocate()
        if index is None:
            # Refuse explicitly rather than leaving it in the OS queue,
            # where it would keep the listener readable.
            logger.warning(
                f"All {self.table.capacity} slots busy, refusing {PeerInfo.from_address(address)}"
            )
            try:
                client.close()
            except OSError:
                pass
            self._report(ErrorCode.BACKLOG_REACHED, "Too many connections")
            return

        client.setblocking(True)
        peer = PeerInfo.from_address(address)
        self.table.occupy(index, client, peer)
        self._selector.register(client, selectors.EVENT_READ, index)
        logger.debug(f"[slot {index}] Accepted connection from {peer}")

        try:
            accepted = self.hooks.should_accept_connection(peer)
        except Exception:
            logger.exception(f"[slot {index}] should_accept_connection failed")
            accepted = False

        if not accepted:
            logger.debug(f"[slot {index}] Rejected {peer}")
            self._close_slot(index)

    # =========================================================================
    # SERVICING
    # =========================================================================

    def _service(self, index: int) -> None:
        """Read from one ready client and act on the handler's verdict."""
        slot = self.table.get(index)
        if slot is None:
            return

        try:
            data = read_chunked(slot.sock, self.config.read_chunk_size)
        except OSError as e:
            logger.debug(f"[slot {index}] Read failed: {e}")
            data = b""

        if not data:
            logger.debug(f"[slot {index}] Peer {slot.peer} closed the connection")
            self._close_slot(index)
            return

        try:
            result = self.hooks.handle_received_data(data, slot.peer)
        except Exception:
            logger.exception(f"[slot {index}] Handler error")
            self._close_slot(index)
            return

        if result is False:
            self._close_slot(index)
            return

        if isinstance(result, _REPLY_TYPES):
            try:
                write_chunked(slot.sock, result, self.config.write_chunk_size)
            except OSError as e:
                logger.warning(f"[slot {index}] Send failed: {e}")
                self._close_slot(index)

    def _close_slot(self, index: int) -> None:
        """Notify, deregister, close and free one slot."""
        slot = self.table.get(index)
        if slot is None:
            return

        try:
            self.hooks.will_close_connection(slot.peer, slot.sock)
        except Exception:
            logger.exception(f"[slot {index}] will_close_connection failed")

        self._unregister(slot.sock)
        self.table.release(index)
        logger.debug(f"[slot {index}] Connection closed")

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def _stop(self) -> None:
        self._state = LoopState.SHUTDOWN
        logger.info("Shutting down event loop...")
        for _, sock in self.table.occupied_sockets():
            self._unregister(sock)
        self._shutdown.drain(
            self.table, self.hooks.will_close_connection, self._close_listening
        )

    def _close_listening(self) -> None:
        if self._listening is None:
            return
        self._unregister(self._listening)
        self.provider.close(self._listening)
        self._listening = None

    def _cleanup(self) -> None:
        """Release everything run() acquired, whatever way the loop ended."""
        self._state = LoopState.SHUTDOWN
        self._shutdown.restore()

        if self._listening is not None:
            # The loop died on an exception rather than a shutdown request.
            self._shutdown.drain(
                self.table, self.hooks.will_close_connection, self._close_listening
            )

        if self._selector is not None:
            self._selector.close()
            self._selector = None

        self._shutdown.close()

    def _unregister(self, sock: socket.socket) -> None:
        if self._selector is None:
            return
        try:
            self._selector.unregister(sock)
        except (KeyError, ValueError):
            pass  # Never registered, or already closed

    def _report(self, code: ErrorCode, message: str) -> None:
        try:
            self.hooks.on_error(code, message)
        except Exception:
            logger.exception(f"on_error hook failed for {code.name}")
