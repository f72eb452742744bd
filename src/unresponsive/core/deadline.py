"""
=============================================================================
DEADLINE-DRIVEN READS
=============================================================================

The server reads from each client for a fixed amount of time and then
stops, no matter what the client is doing. Every read is therefore bounded
by an ABSOLUTE deadline:

    deadline = accept_time + delay

=============================================================================
WHY AN ABSOLUTE DEADLINE?
=============================================================================

A "remaining seconds" counter that is decremented after each wake-up
drifts: every select() call returns a little late, and the error adds up.

    BAD:   remaining -= time_spent_waiting     (error accumulates)
    GOOD:  remaining = deadline - now()        (error never exceeds one wake-up)

We recompute the remaining time from the clock on EVERY iteration, using
time.monotonic() so wall-clock adjustments can't stretch or shrink the wait.

=============================================================================
ONE ITERATION OF wait_and_read()
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   remaining = deadline - now                                         │
    │        │                                                             │
    │        ├── remaining <= 0 ──────────────────────► TIMED OUT          │
    │        │                                                             │
    │        ▼                                                             │
    │   selector.select(min(remaining, MAX_WAIT))                          │
    │        │                                                             │
    │        ├── nothing ready ─────────────────────► loop again           │
    │        │                                                             │
    │        ▼                                                             │
    │   recv_into(free part of buffer  OR  scratch area)                   │
    │        │                                                             │
    │        ├── 0 bytes ───────────────────────────► EOF                  │
    │        ├── BlockingIOError / InterruptedError ► loop again           │
    │        ├── other OSError ─────────────────────► ERROR                │
    │        └── n bytes ───────────────────────────► BYTES READ           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import selectors
import socket
import time
from dataclasses import dataclass
from typing import Callable, Optional


# Upper bound for a single selector wait. The loop recomputes the remaining
# time afterwards, so this only limits how long one wait can block.
MAX_WAIT = 60.0


class Deadline:
    """
    An absolute point in time on the monotonic clock.

    Usage:
        deadline = Deadline(5)
        deadline.remaining()   # 4.9999...
        deadline.expired       # False (for about five seconds)
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left until expiry (negative once expired)."""
        return self.expires_at - self._clock()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s)"


class InputBuffer:
    """
    Fixed-capacity accumulation buffer for client input.

    Bytes are appended until the buffer is full. After that, reads still
    drain the socket (a stalled sender must not block on us) but go into
    a scratch area and are forgotten.
    """

    def __init__(self, capacity: int = 4096):
        self.capacity = capacity
        self._data = bytearray(capacity)
        self._scratch = bytearray(capacity)
        self.used = 0

    @property
    def free(self) -> int:
        return self.capacity - self.used

    @property
    def is_full(self) -> bool:
        return self.used >= self.capacity

    def contents(self) -> bytes:
        """The retained prefix of everything the client sent."""
        return bytes(self._data[:self.used])

    def fill_from(self, sock: socket.socket) -> tuple[int, bool]:
        """
        Do exactly one recv_into() on the socket.

        Returns:
            (bytes_read, kept) where kept tells whether the bytes landed in
            the buffer (False means they were drained and discarded).

        Raises:
            OSError: Whatever recv_into() raises, including the transient
                     BlockingIOError and InterruptedError.
        """
        if self.is_full:
            return sock.recv_into(self._scratch), False

        view = memoryview(self._data)[self.used:]
        n = sock.recv_into(view)
        self.used += n
        return n, True


@dataclass
class ReadResult:
    """
    Outcome of one wait_and_read() call.

    Exactly one of the following describes the result:
        bytes_read > 0     data arrived (kept tells where it went)
        timed_out          the deadline passed first
        eof                the peer closed its write side
        error              a non-transient socket error
    """
    bytes_read: int = 0
    kept: bool = False
    timed_out: bool = False
    eof: bool = False
    error: Optional[OSError] = None


class DeadlineReader:
    """
    Reads from a non-blocking socket without ever waiting past a deadline.

    Each reader owns a selector with the socket registered for reading.
    Call close() (Connection does this) to release the selector.
    """

    def __init__(self, sock: socket.socket, buffer: InputBuffer):
        self.socket = sock
        self.buffer = buffer
        self._selector = selectors.DefaultSelector()
        self._selector.register(sock, selectors.EVENT_READ)

    def wait_and_read(self, deadline: Deadline) -> ReadResult:
        """
        Wait for input until the deadline and perform one read.

        Transient conditions (interrupted waits, spurious wake-ups,
        would-block reads) never reach the caller: the loop simply
        recomputes the remaining time and tries again.
        """
        while True:
            remaining = deadline.remaining()
            if remaining <= 0:
                return ReadResult(timed_out=True)

            try:
                events = self._selector.select(min(remaining, MAX_WAIT))
            except InterruptedError:
                continue
            except OSError as e:
                return ReadResult(error=e)

            if not events:
                continue

            try:
                n, kept = self.buffer.fill_from(self.socket)
            except (BlockingIOError, InterruptedError):
                continue
            except OSError as e:
                return ReadResult(error=e)

            if n == 0:
                return ReadResult(eof=True)

            return ReadResult(bytes_read=n, kept=kept)

    def close(self):
        """Release the selector (the socket itself is left alone)."""
        try:
            self._selector.close()
        except (OSError, ValueError):
            pass
