"""
=============================================================================
PROTOCOL SNIFFING
=============================================================================

The server never parses requests. It only needs to know which dialect to
answer in, so it looks for the tail of an HTTP/1.x request line:

    GET /index.html HTTP/1.1\\r\\n
                    └────────────┘
                    this is all we look for

    b"HTTP/1.0\\r\\n"  or  b"HTTP/1.1\\r\\n"  anywhere in the buffer

This is a heuristic, not a validator. A garbage line that happens to end
with "HTTP/1.1\\r\\n" counts as HTTP, and a perfectly valid HTTP/2 preface
does not. Both are fine: the answer is a canned response either way.

The search runs over the WHOLE accumulated buffer, not the latest chunk,
so a marker split across two TCP segments is still found.

=============================================================================
"""

from typing import Optional


HTTP_MARKERS = (b"HTTP/1.0\r\n", b"HTTP/1.1\r\n")


def classify(data: bytes) -> bool:
    """Return True if data contains an HTTP/1.0 or HTTP/1.1 request line end."""
    return any(marker in data for marker in HTTP_MARKERS)


def request_line(data: bytes) -> bytes:
    """Bytes up to (not including) the first carriage return."""
    return data.split(b"\r", 1)[0]


class ProtocolSniffer:
    """
    Sticky HTTP detector for one connection.

    Once feed() has seen the marker the connection stays classified as
    HTTP; later input is never looked at again.

    Usage:
        sniffer = ProtocolSniffer()
        if sniffer.feed(buffer.contents()):
            log.info(sniffer.request_line.decode("latin-1"))
    """

    def __init__(self):
        self.is_http = False
        self.request_line: Optional[bytes] = None

    def feed(self, data: bytes) -> bool:
        """
        Inspect the accumulated input.

        Args:
            data: Everything buffered so far for this connection.

        Returns:
            True only on the call that flips the classification to HTTP.
        """
        if self.is_http:
            return False

        if not classify(data):
            return False

        self.is_http = True
        self.request_line = request_line(data)
        return True
