"""
=============================================================================
UNRESPONSIVE SERVER
=============================================================================

The orchestrator that ties the components together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SERVER ARCHITECTURE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                     ┌──────────────────────┐                         │
    │                     │ UnresponsiveServer   │                         │
    │                     │ (Orchestrator)       │                         │
    │                     └──────────┬───────────┘                         │
    │                                │                                     │
    │          ┌─────────────────────┼─────────────────────┐               │
    │          ▼                     ▼                     ▼               │
    │   ┌──────────────┐    ┌──────────────────┐   ┌──────────────┐        │
    │   │ SocketServer │    │ WorkerSupervisor │   │ SlowResponder│        │
    │   │ (Accepting)  │    │ (Threads, reap)  │   │ (State mach.)│        │
    │   └──────────────┘    └──────────────────┘   └──────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DISPATCH MODES
=============================================================================

    concurrent (default)    every connection gets its own worker thread;
                            the accept loop continues immediately

    single client (-1)      the responder runs inline in the accept loop;
                            the next client waits in the listen backlog
                            until the current one is CLOSED

=============================================================================
"""

import logging
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, WorkerSupervisor
from .log import setup_logging
from .responder import SlowResponder


logger = logging.getLogger(__name__)


class UnresponsiveServer:
    """
    A TCP server that answers every client late.

    Example:
        server = UnresponsiveServer(ServerConfig(port=9000, delay=30))
        server.run()   # Blocks until Ctrl+C / SIGTERM
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self._socket_server = SocketServer(self.config)
        self._supervisor = WorkerSupervisor()
        self._responder = SlowResponder(self.config)

    @property
    def port(self) -> int:
        """The port actually listened on."""
        return self._socket_server.port

    @property
    def supervisor(self) -> WorkerSupervisor:
        return self._supervisor

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, configure_logging: bool = True):
        """
        Start the server (blocking).

        Args:
            configure_logging: Install the stdout/stderr log sinks. Embedders
                               with their own logging setup pass False.

        Raises:
            OSError: If the listening socket fails (bind, listen, accept).
        """
        if configure_logging:
            setup_logging(self.config.log_level)

        mode = "single client" if self.config.single_client else "concurrent"
        logger.info(f"Responding after {self.config.delay:g}s ({mode} mode)")

        try:
            self._socket_server.start(
                self._handle_connection,
                housekeeping=self._supervisor.reap,
            )
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask a running server to stop (thread-safe)."""
        self._socket_server.shutdown()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_listening(timeout)

    def _shutdown(self):
        logger.info("Shutting down server...")

        self._supervisor.shutdown(
            wait=True,
            timeout=self.config.effective_shutdown_timeout,
        )

        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Dispatch one accepted connection.

        Called by SocketServer in the accept thread. After a hand-off the
        accept thread keeps no reference to the connection.
        """
        if not self.config.single_client:
            # The worker logs and counts a handler that raises
            self._supervisor.submit(self._responder.handle, args=(conn,))
            return

        try:
            self._responder.handle(conn)
        except Exception as e:
            # handle() already closed the socket; keep accepting
            logger.exception(f"[{conn.label}] Connection error: {e}")
