"""
Canned terminal responses.

A held connection gets exactly one answer, in two parts:

    head   written when the drain phase ends (HTTP only)
    tail   written when the hold phase ends

    HTTP client                          raw client
    ───────────                          ──────────
    HTTP/1.1 503 Service Unavailable     (nothing)
    Content-Type: text/plain
    ... hold ...                         ... hold ...
    Content-Length: 0                    Hello, world!
    <blank line>
"""

from dataclasses import dataclass
from http import HTTPStatus


def status_line(status: HTTPStatus) -> bytes:
    """Format an HTTP/1.1 status line, e.g. b"HTTP/1.1 503 Service Unavailable\\r\\n"."""
    return f"HTTP/1.1 {status.value} {status.phrase}\r\n".encode("ascii")


@dataclass(frozen=True)
class TerminalResponse:
    """
    The bytes a connection receives, split by when they are sent.

    Attributes:
        head: Lines sent (one write each) as soon as the drain phase ends.
        tail: Sent once the hold phase is over.
    """
    head: tuple = ()
    tail: bytes = b""

    def to_bytes(self) -> bytes:
        return b"".join(self.head) + self.tail


HTTP_RESPONSE = TerminalResponse(
    head=(
        status_line(HTTPStatus.SERVICE_UNAVAILABLE),
        b"Content-Type: text/plain\r\n",
    ),
    tail=b"Content-Length: 0\r\n\r\n",
)

RAW_RESPONSE = TerminalResponse(tail=b"Hello, world!\r\n")


def response_for(is_http: bool) -> TerminalResponse:
    """Pick the response dialect for a classified connection."""
    return HTTP_RESPONSE if is_http else RAW_RESPONSE
