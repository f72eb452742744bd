"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with everything the
responder needs for its single delay-then-respond cycle:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. IDENTITY                                                         │
    │     └── Peer address and a "host:port" label for every log line      │
    │                                                                      │
    │  2. DEADLINE                                                         │
    │     └── Stamped at accept time: accept_time + delay                  │
    │                                                                      │
    │  3. INPUT                                                            │
    │     └── Bounded buffer + deadline reader (see deadline.py)           │
    │                                                                      │
    │  4. OUTPUT                                                           │
    │     └── send() writes every byte, or gives up on an error or stall  │
    │                                                                      │
    │  5. GUARANTEED CLOSE                                                 │
    │     └── shutdown(SHUT_RDWR) + close() + "CLOSED" on every path       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

A client that sends "GET / HTTP/1.1\\r\\n" might have it delivered as

    recv() → "GET / HTTP/1."
    recv() → "1\\r\\n"

so the sniffer has to look at everything received so far, never at a
single chunk. That is why the connection keeps an accumulation buffer.

=============================================================================
"""

import selectors
import socket
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from ..log import ConnectionLogAdapter, connection_logger
from .deadline import Deadline, DeadlineReader, InputBuffer


class ConnectionState(Enum):
    """
    Connection lifecycle states.

        CONNECTED ──► DRAINING ──┬──► RESPONDING ──► CLOSED
                                 └──► SILENT ──────► CLOSED
    """
    CONNECTED = "connected"    # Just accepted
    DRAINING = "draining"      # Reading input until the deadline
    RESPONDING = "responding"  # Deadline passed, sending the response
    SILENT = "silent"          # Peer went away, nothing will be sent
    CLOSED = "closed"          # Socket released


def resolve_peer_name(address: tuple, resolve: bool = True) -> str:
    """
    Build the "host:port" label used in log lines.

    The host part is the reverse-DNS name of the peer when it resolves,
    and the numeric address otherwise.

    Args:
        address: The (ip, port) tuple returned by accept().
        resolve: Try a reverse lookup first.
    """
    ip, port = address[0], address[1]
    host = ip
    if resolve:
        try:
            host = socket.gethostbyaddr(ip)[0]
        except (OSError, UnicodeError):
            # herror/gaierror are OSError subclasses: no PTR record
            host = ip
    return f"{host}:{port}"


@dataclass
class Connection:
    """
    One accepted client connection.

    Attributes:
        socket: The client socket (switched to non-blocking mode).
        address: Client's (ip, port) tuple.
        deadline: When the response is due.
        buffer_size: Capacity of the input buffer.
        send_timeout: Longest wait for the socket to become writable while
                      sending before the write is abandoned.
        label: "host:port" for log lines (numeric until resolve_label()).
        is_http: Input was recognised as HTTP (sticky).
        peer_closed: EOF was observed.
        state: Current lifecycle state.
    """

    socket: socket.socket
    address: tuple
    deadline: Deadline
    buffer_size: int = 4096
    send_timeout: float = 10.0

    label: str = ""
    is_http: bool = False
    peer_closed: bool = False
    state: ConnectionState = ConnectionState.CONNECTED

    buffer: InputBuffer = field(init=False, repr=False)
    reader: DeadlineReader = field(init=False, repr=False)
    log: ConnectionLogAdapter = field(init=False, repr=False)

    def __post_init__(self):
        # Reads are multiplexed against the deadline, never blocking
        self.socket.setblocking(False)

        if not self.label:
            self.label = f"{self.address[0]}:{self.address[1]}"

        self.buffer = InputBuffer(self.buffer_size)
        self.reader = DeadlineReader(self.socket, self.buffer)
        self.log = connection_logger(self.label)

    def resolve_label(self, resolve: bool = True) -> str:
        """Replace the numeric label with the reverse-resolved one."""
        self.label = resolve_peer_name(self.address, resolve)
        self.log = connection_logger(self.label)
        return self.label

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Write all of data to the client.

        The socket is non-blocking, so send() may accept only part of the
        data or refuse with BlockingIOError. Both are retried after waiting
        for the socket to become writable. A peer that stops reading for
        longer than send_timeout gets the write abandoned.

        Returns:
            True if everything was sent, False on a hard error or a stalled
            peer (logged).
        """
        view = memoryview(data)
        while view:
            try:
                sent = self.socket.send(view)
            except (BlockingIOError, InterruptedError):
                if not self._wait_writable():
                    self.log.error(f"Send timed out after {self.send_timeout:g} seconds")
                    return False
                continue
            except OSError as e:
                self.log.error(e.strerror or str(e))
                return False
            view = view[sent:]
        return True

    def _wait_writable(self) -> bool:
        with selectors.DefaultSelector() as selector:
            selector.register(self.socket, selectors.EVENT_WRITE)
            return bool(selector.select(self.send_timeout))

    def probe_eof(self) -> Optional[bool]:
        """
        Check, without blocking, whether the peer has closed its side.

        Any data that is waiting is read and discarded.

        Returns:
            True on EOF, False if the peer is still there,
            None on a hard error (logged).
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except (BlockingIOError, InterruptedError):
            return False
        except OSError as e:
            self.log.error(e.strerror or str(e))
            return None
        return data == b""

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Shut down both directions, release the socket, log "CLOSED".

        Idempotent; every error on the way is ignored because the peer may
        already be gone.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.reader.close()

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Not connected any more

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        self.log.info("CLOSED")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
