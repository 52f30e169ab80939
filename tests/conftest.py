"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Callable, Generator, List, Optional
from unittest.mock import Mock
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tcpreactor import ReactorServer, ServerConfig, ServerHooks, PeerInfo
from tcpreactor.errors import ErrorCode


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` runs out."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def connect(address, timeout: float = 5.0) -> socket.socket:
    """Open a client connection to a running test server."""
    family = socket.AF_UNIX if isinstance(address, str) else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    sock.connect(address)
    return sock


def closed_by_server(sock: socket.socket) -> bool:
    """True if the server side of ``sock`` has been closed."""
    try:
        return sock.recv(1024) == b""
    except ConnectionResetError:
        return True


def mock_socket(*chunks: bytes) -> Mock:
    """Client socket double whose recv() yields ``chunks`` in order."""
    sock = Mock(spec=socket.socket)
    sock.recv.side_effect = list(chunks)
    sock.send.side_effect = lambda data: len(data)
    return sock


class Recorder:
    """
    Hooks that remember every call.

    The data handler defers to ``reply`` (a function of the payload), so
    each test decides what the server answers.
    """

    def __init__(self, reply: Optional[Callable[[bytes], object]] = None, accept: bool = True):
        self.reply = reply or (lambda data: None)
        self.accept = accept
        self.received: List[tuple] = []
        self.accepted: List[PeerInfo] = []
        self.closed: List[PeerInfo] = []
        self.errors: List[tuple] = []
        self.events: List[str] = []
        self._lock = threading.Lock()

    def handle_received_data(self, data: bytes, peer: PeerInfo):
        with self._lock:
            self.received.append((data, peer))
        return self.reply(data)

    def should_accept_connection(self, peer: PeerInfo) -> bool:
        with self._lock:
            self.accepted.append(peer)
        return self.accept

    def will_close_connection(self, peer: PeerInfo, sock: socket.socket) -> None:
        with self._lock:
            self.closed.append(peer)
            self.events.append("will_close")

    def on_error(self, code: ErrorCode, message: str) -> None:
        with self._lock:
            self.errors.append((code, message))

    def hooks(self) -> ServerHooks:
        return ServerHooks(
            handle_received_data=self.handle_received_data,
            should_accept_connection=self.should_accept_connection,
            will_close_connection=self.will_close_connection,
            on_error=self.on_error,
        )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: ReactorServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self):
        return self.server.address

    @property
    def table(self):
        return self.server.loop.table

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def stopped(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        backlog=4,
        poll_timeout=0.5,
        exit_on_shutdown=False,
        log_level="DEBUG",
    )


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def start_server(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """
    Factory fixture: start_server(hooks, **config_overrides) -> TestServer.

    Every server started through it is stopped at teardown.
    """
    started: List[TestServer] = []

    def factory(hooks: ServerHooks, **overrides) -> TestServer:
        cfg = ServerConfig(**{**config.__dict__, **overrides})
        test_srv = TestServer(ReactorServer(hooks, cfg))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()
