"""
=============================================================================
UNRESPONSIVE - A TCP Server That Answers Late, On Purpose
=============================================================================

This package implements a deliberately slow TCP server for testing how
clients (particularly HTTP clients) behave when a server accepts their
connection and then keeps them waiting.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    WHAT A CLIENT SEES                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   t = 0        connect() succeeds                                    │
    │   t = 0..D     anything it sends is read (and logged), no answer     │
    │   t = D        HTTP client:  HTTP/1.1 503 Service Unavailable        │
    │                              Content-Type: text/plain                │
    │                              Content-Length: 0                       │
    │                other client: Hello, world!                           │
    │                then the connection is closed                         │
    │                                                                      │
    │   If the client hangs up before D, it gets nothing at all.           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    unresponsive/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m unresponsive)
    ├── server.py            # UnresponsiveServer orchestrator
    ├── responder.py         # Per-connection state machine
    ├── config.py            # ServerConfig dataclass
    ├── log.py               # Line logger (stdout/stderr sinks)
    ├── core/                # Low-level components
    │   ├── socket_server.py # Listening socket + accept loop
    │   ├── connection.py    # Connection wrapper
    │   ├── deadline.py      # Deadline-bounded reads
    │   └── supervisor.py    # Worker threads + reaping
    └── protocol/            # Just enough protocol awareness
        ├── sniffer.py       # HTTP/1.x detection
        └── responses.py     # Canned responses

=============================================================================
QUICK START
=============================================================================

    $ unresponsive 9000 30          # every client waits 30 seconds
    $ unresponsive -1 9000 30       # ... one client at a time

    from unresponsive import UnresponsiveServer, ServerConfig

    UnresponsiveServer(ServerConfig(port=9000, delay=30)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import UnresponsiveServer
from .config import ServerConfig

__all__ = ["UnresponsiveServer", "ServerConfig", "__version__"]
