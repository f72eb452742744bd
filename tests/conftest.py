"""
pytest configuration and fixtures.
"""

import dataclasses
import socket
import threading
import time
from typing import Callable, Generator, List
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from unresponsive import UnresponsiveServer, ServerConfig
from unresponsive.core import Connection, Deadline


class FakeClock:
    """Manually advanced monotonic clock; sleep() moves it forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> ServerConfig:
    """Test configuration: short delay, loopback, no DNS."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        delay=0.5,
        resolve_names=False,
        shutdown_timeout=2.0,
    )


@pytest.fixture
def socket_pair() -> Generator[tuple, None, None]:
    """(server_side, client_side) connected sockets."""
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


@pytest.fixture
def make_connection(socket_pair) -> Callable[..., Connection]:
    """Build a Connection around the server side of socket_pair."""
    server_side, _ = socket_pair

    def factory(delay: float = 0.5, buffer_size: int = 4096, deadline: Deadline = None,
                send_timeout: float = 10.0) -> Connection:
        return Connection(
            socket=server_side,
            address=("127.0.0.1", 40000),
            deadline=deadline or Deadline(delay),
            buffer_size=buffer_size,
            send_timeout=send_timeout,
        )

    return factory


def read_all(sock: socket.socket) -> bytes:
    """Read until the peer closes."""
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


class ServerThread:
    """Runs an UnresponsiveServer in a background thread."""

    def __init__(self, server: UnresponsiveServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def address(self) -> tuple:
        return ("127.0.0.1", self.server.port)

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"configure_logging": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def connect(self) -> socket.socket:
        return socket.create_connection(self.address, timeout=5.0)

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def start_server(config: ServerConfig) -> Generator[Callable[..., ServerThread], None, None]:
    """Factory fixture: start_server(**config_overrides) -> ServerThread."""
    started: List[ServerThread] = []

    def factory(**overrides) -> ServerThread:
        srv = ServerThread(UnresponsiveServer(dataclasses.replace(config, **overrides)))
        srv.start()
        started.append(srv)
        return srv

    yield factory

    for srv in started:
        srv.stop()


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll predicate until it is true or timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()
