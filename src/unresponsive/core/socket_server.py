"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

This module owns the listening socket: it binds, listens, accepts, and
hands every accepted client to a callback. It knows nothing about delays
or responses.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create a socket file descriptor
    2. bind()      Associate the socket with an IP:PORT
    3. listen()    OS starts queueing incoming connections (backlog)
    4. accept()    Returns a NEW socket just for that client
    5. close()     Release the listening socket on shutdown

=============================================================================
THE DEADLINE STARTS AT accept()
=============================================================================

The client's clock starts when the TCP handshake completes, so the
connection's deadline is stamped right here, before anything else can
take time (reverse DNS, thread start-up, a busy single-client server).

=============================================================================
ERRORS
=============================================================================

    bind()/listen() failure     logged and re-raised: fatal at startup
    accept() timeout            normal, we poll the running flag
    accept() interrupted        retried
    any other accept() error    logged and re-raised: fatal

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable

from ..config import ServerConfig
from .connection import Connection
from .deadline import Deadline


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(handler, housekeeping)                                      │
    │        │                                                             │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, timeout    │
    │        ├──► bind() / listen()                                        │
    │        ├──► _setup_signals()   SIGTERM/SIGINT → shutdown()          │
    │        │                                                             │
    │        └──► _accept_loop()                                           │
    │                 └──► while running:                                  │
    │                         housekeeping()    e.g. reap workers          │
    │                         accept()          wait ≤ 1s                  │
    │                         Connection(deadline=now + delay)             │
    │                         handler(conn)                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Real port once bound (differs from config.port when that is 0)
        self.port = config.port

        self._listening_event = threading.Event()

        self._original_handlers: dict = {}

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restarting the server must not fail on sockets in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Accepted sockets inherit this: head lines leave immediately
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up at least once a second to check _running
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers for graceful shutdown.

        Python only allows this from the main thread; an embedded server
        (tests, a background thread) is stopped with shutdown() instead.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        housekeeping: Optional[Callable[[], None]] = None,
    ):
        """
        Start accepting connections. Blocks until shutdown() is called.

        Args:
            connection_handler: Receives each accepted Connection. It either
                                handles it inline or hands it off.
            housekeeping: Called once per accept-loop iteration.

        Raises:
            OSError: If binding, listening or accepting fails.
        """
        self._socket = self._create_socket()

        try:
            try:
                self._socket.bind((self.config.host, self.config.port))
                self._socket.listen(self.config.backlog)
            except OSError as e:
                logger.error(f"Failed to listen on {self.config.host}:{self.config.port}: {e}")
                raise

            self.port = self._socket.getsockname()[1]
            self._running = True
            self._setup_signals()

            logger.info(f"Listening on {self.config.host}:{self.port}")
            self._listening_event.set()

            self._accept_loop(connection_handler, housekeeping)
        finally:
            self._cleanup()

    def _accept_loop(
        self,
        connection_handler: Callable[[Connection], None],
        housekeeping: Optional[Callable[[], None]],
    ):
        while self._running:
            if housekeeping is not None:
                housekeeping()

            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except InterruptedError:
                continue
            except OSError as e:
                if not self._running:
                    break  # Socket closed by shutdown()
                logger.error(f"accept: {e}")
                raise

            deadline = Deadline(self.config.delay)

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    deadline=deadline,
                    buffer_size=self.config.buffer_size,
                    send_timeout=self.config.send_timeout,
                )
            except OSError as e:
                # The client vanished between accept() and setup
                logger.error(f"[{client_address[0]}:{client_address[1]}] {e}")
                client_socket.close()
                continue

            connection_handler(conn)

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Safe to call from a signal handler or another thread, and more
        than once.
        """
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._listening_event.clear()
        logger.info("Socket server stopped")

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is bound and listening (for tests/embedding)."""
        return self._listening_event.wait(timeout)

