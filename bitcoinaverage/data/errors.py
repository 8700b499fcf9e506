"""Exception taxonomy for REST and streaming failures."""

from __future__ import annotations

from typing import Any


class BitcoinAverageError(Exception):
    """Base class for every error raised by the client."""


class TransportError(BitcoinAverageError):
    """Network, DNS or TLS failure before any response existed."""


class RemoteError(BitcoinAverageError):
    """The API answered with a non-success status code.

    The body is kept verbatim for diagnostics and is never parsed.
    """

    def __init__(self, path: str, status: int, status_text: str, body: str) -> None:
        super().__init__(f"[{status}] {status_text} from bitcoinaverage API for {path}: {body}")
        self.path = path
        self.status = status
        self.status_text = status_text
        self.body = body


class DecodeError(BitcoinAverageError):
    """A payload did not match the expected JSON shape."""


class StreamConnectionError(BitcoinAverageError):
    """Dialing the streaming socket failed."""


class ProtocolError(BitcoinAverageError):
    """A write or read failed during the subscribe handshake."""


class SubscriptionRejected(BitcoinAverageError):
    """The server acknowledged a subscribe command with something other than OK."""

    def __init__(self, topic: Any, got: Any) -> None:
        super().__init__(f"non OK command response for {topic}: {got!r}")
        self.topic = topic
        self.got = got


__all__ = [
    "BitcoinAverageError",
    "TransportError",
    "RemoteError",
    "DecodeError",
    "StreamConnectionError",
    "ProtocolError",
    "SubscriptionRejected",
]
