"""
=============================================================================
CHUNKED SOCKET I/O
=============================================================================

Read and write primitives used by the event loop for every client.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

A single recv() returns whatever the kernel has buffered, up to the size
we ask for. The loop only knows that a socket is readable, not how much is
waiting, so read_chunked() keeps pulling chunks until one comes back short:

    recv(2048) → 2048 bytes   full chunk, there may be more
    recv(2048) → 2048 bytes   full chunk, there may be more
    recv(2048) →  517 bytes   short chunk, the buffer is drained → stop

Only the first recv() may block. The socket was reported readable, so it
returns immediately anyway; follow-up receives use MSG_DONTWAIT so a payload
that happens to be an exact multiple of the chunk size does not stall the
whole loop waiting for bytes that never come.

On the way out, send() may accept fewer bytes than offered when the kernel
send buffer is full. write_chunked() walks the payload in chunk-sized slices
and keeps going from wherever the last send() stopped, until every byte is
out:

    payload  ├──────── 5000 bytes ─────────┤
    send #1  ├─ 2048 ─┤
    send #2           ├─ 2048 ─┤
    send #3                    ├─ 904 ┤

=============================================================================
"""

import socket


# Not every platform has MSG_DONTWAIT (Windows); there the follow-up
# receives fall back to plain blocking recv().
_MSG_DONTWAIT = getattr(socket, "MSG_DONTWAIT", 0)


def read_chunked(sock: socket.socket, chunk_size: int) -> bytes:
    """
    Read everything currently available on ``sock``.

    Args:
        sock: Connected client socket.
        chunk_size: Maximum bytes per recv() call.

    Returns:
        The accumulated bytes. Empty bytes means the peer closed the
        connection.

    Raises:
        ValueError: If chunk_size is not positive.
        OSError: If the first receive fails (reset, broken pipe, ...).
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    chunks = []
    flags = 0

    while True:
        try:
            data = sock.recv(chunk_size, flags)
        except BlockingIOError:
            break  # Nothing more buffered right now

        if not data:
            break

        chunks.append(data)

        if len(data) < chunk_size:
            break

        flags = _MSG_DONTWAIT

    return b"".join(chunks)


def write_chunked(sock: socket.socket, data: bytes, chunk_size: int) -> int:
    """
    Send all of ``data`` in slices of at most ``chunk_size`` bytes.

    Args:
        sock: Connected client socket.
        data: Payload to deliver.
        chunk_size: Maximum bytes per send() call.

    Returns:
        Number of bytes sent (always len(data) on success).

    Raises:
        ValueError: If chunk_size is not positive.
        ConnectionError: If the socket stops accepting data.
        OSError: If a send fails.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    view = memoryview(data).cast("B")
    total = len(view)
    offset = 0

    while offset < total:
        sent = sock.send(view[offset:offset + chunk_size])
        if sent == 0:
            raise ConnectionError(
                f"socket connection broken after {offset} of {total} bytes"
            )
        offset += sent

    return offset
