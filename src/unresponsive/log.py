"""
=============================================================================
LINE LOGGER
=============================================================================

Every event the server produces ends up as one timestamped line:

    [14:02:11] [31337] [client.example.org:50412] CONNECTED
    [14:02:11] [31337] [client.example.org:50412] Received 78 bytes
    [14:02:11] [31337] [client.example.org:50412] GET / HTTP/1.1
    [14:02:41] [31337] [client.example.org:50412] Sent HTTP 503
    [14:02:41] [31337] [client.example.org:50412] CLOSED

This log IS the operator interface of the server; there is no other UI.

=============================================================================
TWO SINKS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   logger "unresponsive"                                              │
    │        │                                                             │
    │        ├──► stdout handler    DEBUG, INFO (operational tracing)      │
    │        │                                                             │
    │        └──► stderr handler    WARNING and above (errors)             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

logging.StreamHandler takes a per-handler lock around each write and
flushes after every record, so lines from different worker threads never
interleave. A failing write is routed to Handler.handleError() and never
raises into the code that logged.

=============================================================================
"""

import logging
import sys
from typing import Optional, TextIO


LOGGER_NAME = "unresponsive"

LOG_FORMAT = "[%(asctime)s] [%(process)d] %(message)s"
DATE_FORMAT = "%H:%M:%S"


class _BelowLevelFilter(logging.Filter):
    """Pass only records strictly below a level (keeps errors off stdout)."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


class ConnectionLogAdapter(logging.LoggerAdapter):
    """
    Prefix every message with the connection label.

        log = connection_logger("10.0.0.5:41000")
        log.info("EOF")        # -> "[10.0.0.5:41000] EOF"
    """

    def process(self, msg, kwargs):
        return f"[{self.extra['label']}] {msg}", kwargs


def connection_logger(label: str) -> ConnectionLogAdapter:
    """Get a logger adapter bound to one connection label."""
    return ConnectionLogAdapter(logging.getLogger(f"{LOGGER_NAME}.connection"), {"label": label})


def setup_logging(
    level: str = "INFO",
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the "unresponsive" logger with its two sinks.

    Calling this again replaces the handlers installed by a previous call,
    so tests can point the sinks at their own streams.

    Args:
        level: Logging level name.
        stdout: Informational sink (default: sys.stdout).
        stderr: Error sink (default: sys.stderr).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_unresponsive_sink", False):
            logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    info_handler = logging.StreamHandler(stdout or sys.stdout)
    info_handler.setFormatter(formatter)
    info_handler.addFilter(_BelowLevelFilter(logging.WARNING))

    error_handler = logging.StreamHandler(stderr or sys.stderr)
    error_handler.setFormatter(formatter)
    error_handler.setLevel(logging.WARNING)

    for handler in (info_handler, error_handler):
        handler._unresponsive_sink = True
        logger.addHandler(handler)

    return logger
