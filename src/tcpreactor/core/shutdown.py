"""
=============================================================================
SHUTDOWN CONTROLLER
=============================================================================

Turns SIGTERM / SIGINT into an orderly stop of the event loop.

=============================================================================
WHY NOT CLEAN UP INSIDE THE SIGNAL HANDLER?
=============================================================================

Python runs signal handlers on the main thread between bytecodes, i.e. at
an arbitrary point in the loop body. If the handler closed client sockets
itself, it could do so in the middle of the loop releasing or occupying a
slot. So the handler only leaves a note and wakes the loop up:

    signal ──► handler ──► flag set + 1 byte into wakeup socket
                                              │
    EventLoop: selector.select() ◄────────────┘  returns immediately
                    │
                    └──► wakeup readable → drain() → exit

The wakeup socket pair matters because of PEP 475: an interrupted select()
is transparently retried, so without something to read the loop would go
straight back to sleep (forever, with poll_timeout=None).

request() does the same from any thread, which is how tests and embedding
applications stop a loop running in a background thread.

=============================================================================
"""

import logging
import signal
import socket
import sys
import threading
from typing import Callable, Dict, Iterable, Optional

from .connection_table import ConnectionTable, PeerInfo


logger = logging.getLogger(__name__)


DEFAULT_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ShutdownController:
    """
    Signal handling and connection draining for one event loop.

    Usage:
        controller = ShutdownController()
        controller.install()                 # main thread only
        selector.register(controller.wakeup_socket, EVENT_READ)
        ...
        if controller.is_requested:
            controller.drain(table, hooks.will_close_connection, close_listening)
        ...
        controller.restore()
        controller.close()
    """

    def __init__(self):
        self._requested = threading.Event()
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)
        self._writer.setblocking(False)
        self._original_handlers: Dict[int, object] = {}
        self.received_signal: Optional[int] = None

    @property
    def wakeup_socket(self) -> socket.socket:
        """Socket that becomes readable when a shutdown is requested."""
        return self._reader

    @property
    def is_requested(self) -> bool:
        return self._requested.is_set()

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def install(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> bool:
        """
        Route the given signals to request().

        Python only allows installing handlers from the main thread; from
        any other thread this logs and returns False, and the loop can
        still be stopped with request().

        Returns:
            True if the handlers were installed.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return False

        for sig in signals:
            self._original_handlers[sig] = signal.signal(sig, self._on_signal)
        return True

    def restore(self) -> None:
        """Put back the handlers that were active before install()."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _on_signal(self, signum, frame):
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating shutdown...")
        self.received_signal = signum
        self.request()

    # =========================================================================
    # REQUEST / DRAIN
    # =========================================================================

    def request(self) -> None:
        """
        Ask the loop to shut down at its next iteration boundary.

        Safe to call repeatedly and from any thread.
        """
        self._requested.set()
        try:
            self._writer.send(b"\0")
        except (BlockingIOError, OSError):
            pass  # Buffer full or already closed; the flag is what counts

    def drain(
        self,
        table: ConnectionTable,
        will_close: Callable[[PeerInfo, socket.socket], None],
        close_listening: Callable[[], None],
    ) -> int:
        """
        Close every client, then the listening socket.

        For each occupied slot the close listener runs first, then the
        socket is closed. An empty table is fine, so a second drain is a
        no-op apart from close_listening().

        Returns:
            Number of client connections closed.
        """
        closed = 0
        for slot in table.slots():
            try:
                will_close(slot.peer, slot.sock)
            except Exception:
                logger.exception(f"[slot {slot.index}] will_close_connection failed")
            table.release(slot.index)
            closed += 1

        close_listening()
        logger.info(f"Closed {closed} client connection(s)")
        return closed

    def exit(self, status: int = 0) -> None:
        """Terminate the process."""
        logger.info("Server stopped")
        sys.exit(status)

    def close(self) -> None:
        """Release the wakeup socket pair."""
        for sock in (self._reader, self._writer):
            try:
                sock.close()
            except OSError:
                pass
