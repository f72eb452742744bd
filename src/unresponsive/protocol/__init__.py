"""
Protocol awareness, kept to the bare minimum: spot HTTP/1.x input and pick
the matching canned response.
"""

from .sniffer import ProtocolSniffer, classify, HTTP_MARKERS
from .responses import TerminalResponse, HTTP_RESPONSE, RAW_RESPONSE, response_for

__all__ = [
    "ProtocolSniffer",
    "classify",
    "HTTP_MARKERS",
    "TerminalResponse",
    "HTTP_RESPONSE",
    "RAW_RESPONSE",
    "response_for",
]
