"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The low-level building blocks of the server:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer (socket_server.py)                                     │
    │   Binds, listens, accepts, stamps each connection's deadline        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ Connection (connection.py)                                          │
    │   One client: label, buffer, writes, guaranteed close               │
    ├─────────────────────────────────────────────────────────────────────┤
    │ Deadline / DeadlineReader (deadline.py)                             │
    │   Reads that never block past the deadline                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ WorkerSupervisor (supervisor.py)                                    │
    │   A thread per connection, reaped without signals                   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, resolve_peer_name
from .deadline import Deadline, DeadlineReader, InputBuffer, ReadResult
from .supervisor import WorkerSupervisor, Worker, WorkerState

__all__ = [
    "SocketServer",       # TCP listener - accepts connections
    "Connection",         # Wrapper for one client socket
    "ConnectionState",    # Enum for connection lifecycle states
    "resolve_peer_name",  # "host:port" label for log lines
    "Deadline",           # Absolute point in time
    "DeadlineReader",     # Deadline-bounded reads
    "InputBuffer",        # Bounded input accumulation
    "ReadResult",         # Outcome of one read
    "WorkerSupervisor",   # Per-connection threads + reaping
    "Worker",
    "WorkerState",
]
