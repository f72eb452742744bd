"""
=============================================================================
SLOW RESPONDER
=============================================================================

The per-connection state machine. This is where the server earns its
name: it accepts the connection, keeps reading whatever the client sends,
and answers only when the deadline expires.

=============================================================================
STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   CONNECTED                                                          │
    │       │                                                              │
    │       ▼                                                              │
    │   DRAINING ◄──────────┐   wait_and_read(deadline)                    │
    │       │               │                                              │
    │       ├── bytes read ─┘   log "Received N bytes", feed sniffer       │
    │       │                                                              │
    │       ├── EOF ─────────────────► SILENT ─────────────┐               │
    │       ├── I/O error ───────────► (failed) ───────────┤               │
    │       │                                              │               │
    │       └── deadline ──► RESPONDING                    │               │
    │                          │                           │               │
    │                          ├── head (HTTP only)        │               │
    │                          ├── hold until deadline     │               │
    │                          │     └── EOF ──► SILENT ───┤               │
    │                          └── tail                    │               │
    │                                 │                    │               │
    │                                 ▼                    ▼               │
    │                              CLOSED ◄────────────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE HOLD PHASE
=============================================================================

The head of an HTTP response is written as soon as draining ends; the tail
only after a second wait against the SAME deadline. Because the deadline
has already expired when the hold phase starts, the second wait normally
ends at once and head and tail go out back to back. The two-step emission
is kept because it is observable from the wire: a client sees the status
line and Content-Type before Content-Length.

=============================================================================
"""

import math
import time
from enum import Enum
from typing import Callable

from .config import ServerConfig
from .core.connection import Connection, ConnectionState
from .protocol.responses import response_for
from .protocol.sniffer import ProtocolSniffer


class Outcome(Enum):
    """How a connection ended."""
    RESPONDED = "responded"  # Full response sent
    SILENT = "silent"        # Peer closed first, nothing (more) sent
    FAILED = "failed"        # I/O error, connection abandoned


class SlowResponder:
    """
    Drives one connection through its delay-then-respond cycle.

    The responder itself holds no per-connection state; everything lives
    on the Connection, so one instance serves every worker thread.

    Usage:
        responder = SlowResponder(config)
        outcome = responder.handle(conn)   # blocks until conn is closed
    """

    def __init__(self, config: ServerConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self._sleep = sleep

    def handle(self, conn: Connection) -> Outcome:
        """
        Run the full lifecycle and close the connection.

        The connection is closed (and "CLOSED" logged) on every path,
        including unexpected exceptions, which propagate afterwards.
        """
        with conn:
            if self.config.resolve_names:
                conn.resolve_label()
            conn.log.info("CONNECTED")

            outcome = self._drain(conn)
            if outcome is not None:
                return outcome

            return self._respond(conn)

    # =========================================================================
    # DRAINING
    # =========================================================================

    def _drain(self, conn: Connection):
        """
        Read until the deadline.

        Returns:
            None when the deadline passed (go on to respond), otherwise the
            terminal Outcome.
        """
        conn.state = ConnectionState.DRAINING
        sniffer = ProtocolSniffer()

        while True:
            result = conn.reader.wait_and_read(conn.deadline)

            if result.timed_out:
                return None

            if result.eof:
                conn.peer_closed = True
                conn.state = ConnectionState.SILENT
                conn.log.info("EOF")
                return Outcome.SILENT

            if result.error is not None:
                conn.log.error(result.error.strerror or str(result.error))
                return Outcome.FAILED

            conn.log.info(f"Received {result.bytes_read} bytes")

            # Only a read that grew the buffer can change the verdict
            if result.kept and sniffer.feed(conn.buffer.contents()):
                conn.is_http = True
                conn.log.info(sniffer.request_line.decode("latin-1"))

    # =========================================================================
    # RESPONDING
    # =========================================================================

    def _respond(self, conn: Connection) -> Outcome:
        conn.state = ConnectionState.RESPONDING
        response = response_for(conn.is_http)

        for line in response.head:
            if not conn.send(line):
                return Outcome.FAILED

        if response.head:
            conn.log.info("Sent HTTP 503")

        outcome = self._hold(conn)
        if outcome is not None:
            return outcome

        if not conn.send(response.tail):
            return Outcome.FAILED

        return Outcome.RESPONDED

    def _hold(self, conn: Connection):
        """
        Keep the connection open until the deadline passes (again).

        Returns:
            None when it is time to send the tail, otherwise the terminal
            Outcome.
        """
        while True:
            remaining = conn.deadline.remaining()
            if remaining <= 0:
                return None

            eof = conn.probe_eof()
            if eof is None:
                return Outcome.FAILED
            if eof:
                conn.peer_closed = True
                conn.state = ConnectionState.SILENT
                conn.log.info("EOF")
                return Outcome.SILENT

            conn.log.info(f"{math.ceil(remaining)} seconds remaining")
            self._sleep(min(remaining, self.config.hold_interval))
