"""
=============================================================================
CONNECTION TABLE
=============================================================================

Fixed-capacity bookkeeping for the clients the event loop is serving.

=============================================================================
SLOTS, NOT A GROWING LIST
=============================================================================

The table is an arena of ``capacity`` slots addressed by small integers.
A slot is either empty or holds exactly one live client socket plus the
peer metadata captured when it was accepted:

    index:   0          1          2          3
           ┌──────────┬──────────┬──────────┬──────────┐
           │ sock A   │  empty   │ sock C   │  empty   │
           │ 10.0.0.5 │          │ 10.0.0.9 │          │
           └──────────┴──────────┴──────────┴──────────┘
                          ▲
                          └── try_allocate() returns 1 (lowest free index)

Indexes are reused as soon as a slot is released, so a handle is only
meaningful while the slot stays occupied. The loop never keeps an index
across iterations for exactly that reason.

INVARIANTS:
- at most ``capacity`` slots are occupied
- a socket appears in at most one slot
- release() is the only way a socket leaves the table, and it closes it

=============================================================================
"""

import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors import ConnectionTableError


logger = logging.getLogger(__name__)


@dataclass
class PeerInfo:
    """
    Metadata about a connected client.

    Handlers receive the live object and may rewrite it. ``tags`` is free
    for the application, e.g. to remember a login name per connection.
    """

    host: str
    port: int
    tags: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_address(cls, address) -> "PeerInfo":
        """
        Build from whatever accept() returned as the peer address.

        AF_INET/AF_INET6 give a tuple, AF_UNIX gives a (usually empty) string.
        """
        if isinstance(address, tuple):
            return cls(host=str(address[0]), port=int(address[1]))
        if isinstance(address, bytes):
            address = address.decode("utf-8", errors="replace")
        return cls(host=address or "", port=0)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class Slot:
    """One occupied entry of the connection table."""

    index: int
    sock: socket.socket
    peer: PeerInfo


class ConnectionTable:
    """
    Arena of client slots owned by a single event loop.

    Usage:
        table = ConnectionTable(capacity=10)

        index = table.try_allocate()
        if index is None:
            ...  # every slot is taken
        else:
            table.occupy(index, client_sock, PeerInfo.from_address(addr))

        for index, sock in table.occupied_sockets():
            ...

        table.release(index)  # closes the socket
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConnectionTableError(f"capacity must be >= 1, got {capacity}")
        self._slots: List[Optional[Slot]] = [None] * capacity

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def is_full(self) -> bool:
        return self.try_allocate() is None

    def __len__(self) -> int:
        return sum(1 for slot in self._slots if slot is not None)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.slots())

    # =========================================================================
    # ALLOCATION
    # =========================================================================

    def try_allocate(self) -> Optional[int]:
        """
        Find the lowest empty slot index.

        Does not reserve anything; the caller follows up with occupy().

        Returns:
            Free index, or None when every slot is occupied.
        """
        for index, slot in enumerate(self._slots):
            if slot is None:
                return index
        return None

    def occupy(self, index: int, sock: socket.socket, peer: PeerInfo) -> Slot:
        """
        Store a freshly accepted client in an empty slot.

        Args:
            index: Index returned by try_allocate().
            sock: Client socket. The table owns it from here on.
            peer: Metadata captured at accept time.

        Raises:
            ConnectionTableError: Index out of range, slot already occupied,
                or the socket is already held by another slot.
        """
        self._check_index(index)
        if self._slots[index] is not None:
            raise ConnectionTableError(f"slot {index} is already occupied")
        if self.find(sock) is not None:
            raise ConnectionTableError(f"socket is already held by slot {self.find(sock)}")

        slot = Slot(index=index, sock=sock, peer=peer)
        self._slots[index] = slot
        return slot

    def release(self, index: int) -> Optional[Slot]:
        """
        Close the slot's socket and empty the slot.

        Releasing an empty slot does nothing, so shutdown can run over a
        table the loop already cleared.

        Returns:
            The released slot, or None if it was empty.
        """
        self._check_index(index)
        slot = self._slots[index]
        if slot is None:
            return None

        self._slots[index] = None
        try:
            slot.sock.close()
        except OSError as e:
            logger.debug(f"[slot {index}] close failed: {e}")
        return slot

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, index: int) -> Optional[Slot]:
        self._check_index(index)
        return self._slots[index]

    def find(self, sock: socket.socket) -> Optional[int]:
        """Index of the slot holding ``sock``, or None."""
        for slot in self._slots:
            if slot is not None and slot.sock is sock:
                return slot.index
        return None

    def slots(self) -> List[Slot]:
        """Occupied slots in ascending index order."""
        return [slot for slot in self._slots if slot is not None]

    def occupied_sockets(self) -> List[Tuple[int, socket.socket]]:
        """(index, socket) pairs for every occupied slot, ascending index."""
        return [(slot.index, slot.sock) for slot in self.slots()]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._slots):
            raise ConnectionTableError(
                f"slot index {index} out of range [0, {len(self._slots)})"
            )
