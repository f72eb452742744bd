"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the unresponsive server.

=============================================================================
WHY A FROZEN DATACLASS?
=============================================================================

The configuration is decided once, at startup, and then handed to every
component: the acceptor, the worker supervisor and each connection handler.
Nothing is allowed to change it afterwards.

    frozen=True gives us that for free:

        config = ServerConfig(port=9000, delay=5)
        config.delay = 1      # dataclasses.FrozenInstanceError

Any "override" is a new value built with dataclasses.replace().

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── unresponsive -1 --host 127.0.0.1 9000 30                   │
    │                                                                      │
    │   2. Environment variables (defaults for the CLI options)           │
    │      └── UNRESPONSIVE_HOST=127.0.0.1 UNRESPONSIVE_SINGLE_CLIENT=1   │
    │                                                                      │
    │   3. Defaults in this class                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The CLI loads ServerConfig.from_env() first and uses it as the defaults
for -1, --host and --log-level, so a flag on the command line wins over
the environment. PORT and DELAY are required arguments and always come
from the command line; UNRESPONSIVE_PORT and UNRESPONSIVE_DELAY are read
only by embedders calling from_env() directly.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the unresponsive server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    BEHAVIOUR
    - port, delay, single_client

    NETWORK SETTINGS
    - host, backlog, buffer_size, resolve_names

    TIMING
    - hold_interval, send_timeout, shutdown_timeout

    LOGGING
    - log_level

    =========================================================================
    EXAMPLES
    =========================================================================

    Hold every client for 30 seconds:
        ServerConfig(port=9000, delay=30)

    Serve one client at a time, no reverse DNS:
        ServerConfig(port=9000, delay=30, single_client=True,
                     resolve_names=False)

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    port: int = 8080
    """
    The port number to listen on (1-65535).
    0 lets the OS pick a free port, which is only useful when the server
    is embedded (tests read the real port back from the server).
    """

    delay: float = 10.0
    """
    Seconds between accepting a connection and sending the final response.
    Must be strictly positive. The CLI only accepts whole seconds.
    """

    single_client: bool = False
    """
    Handle one connection at a time. Further connections wait in the
    listen backlog until the current one is closed.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """The IP address to bind to. All interfaces by default."""

    backlog: int = 5
    """Maximum number of connections queued by the kernel before accept()."""

    buffer_size: int = 4096
    """
    Capacity of the per-connection input buffer in bytes.
    Only this prefix of the client's input is kept and sniffed; anything
    beyond it is read and thrown away.
    """

    resolve_names: bool = True
    """Reverse-resolve peer addresses for log labels."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMING
    # ─────────────────────────────────────────────────────────────────────

    hold_interval: float = 10.0
    """Longest single sleep (and progress log interval) in the hold phase."""

    send_timeout: float = 10.0
    """
    Longest wait for a client socket to become writable. A client that
    stops reading for longer than this has its response abandoned.
    """

    shutdown_timeout: Optional[float] = None
    """
    How long a graceful shutdown waits for in-flight connections.
    None means "one full delay", which lets every held client get its
    response.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""

    @property
    def effective_shutdown_timeout(self) -> float:
        """Shutdown wait, defaulting to the configured delay."""
        if self.shutdown_timeout is None:
            return self.delay
        return self.shutdown_timeout

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        UNRESPONSIVE_PORT           Listen port (default: 8080)
        UNRESPONSIVE_DELAY          Delay in seconds (default: 10)
        UNRESPONSIVE_HOST           Bind address (default: 0.0.0.0)
        UNRESPONSIVE_SINGLE_CLIENT  "1"/"true" for single-client mode
        UNRESPONSIVE_LOG_LEVEL      Logging level (default: INFO)

        =====================================================================
        """
        single = os.getenv("UNRESPONSIVE_SINGLE_CLIENT", "")
        return cls(
            port=int(os.getenv("UNRESPONSIVE_PORT", "8080")),
            delay=float(os.getenv("UNRESPONSIVE_DELAY", "10")),
            host=os.getenv("UNRESPONSIVE_HOST", "0.0.0.0"),
            single_client=single.strip().lower() in _TRUE_VALUES,
            log_level=os.getenv("UNRESPONSIVE_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Invalid configuration is a startup error, never a runtime one:
        the server refuses to start instead of misbehaving later.

        Raises:
            ValueError: If any value is out of range.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.delay <= 0:
            raise ValueError(f"Invalid delay: {self.delay}. Must be > 0.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.hold_interval <= 0:
            raise ValueError("hold_interval must be > 0")

        if self.send_timeout <= 0:
            raise ValueError("send_timeout must be > 0")

        if self.shutdown_timeout is not None and self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. One frozen dataclass, built once and passed everywhere
# 2. Environment variable support
# 3. Validation at startup (fail-fast)
# =============================================================================
