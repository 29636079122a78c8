"""Exceptions raised by the GoXLR driver."""

from __future__ import annotations


class GoXLRError(Exception):
    """Base exception for all driver errors."""


class DeviceNotFound(GoXLRError, ConnectionError):
    """The requested bus/address no longer holds a GoXLR."""


class TransportError(GoXLRError, IOError):
    """A control transfer failed."""


class TransientNotReady(TransportError):
    """The device stalled the response poll; it has nothing to return yet.

    Only raised by transports. The session retries it inside the poll
    loop and never lets it reach a caller.
    """


class ResponseTimeout(GoXLRError, TimeoutError):
    """All poll attempts were used without the device producing a response."""


class MalformedResponse(GoXLRError, ValueError):
    """A response could not be decoded."""


class SequenceMismatch(GoXLRError):
    """A response answered a different request than the one in flight."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Expected response to command index {expected}, got {received}"
        )
        self.expected = expected
        self.received = received


class ResyncExhausted(GoXLRError):
    """The command index stayed out of step after a reset and retry."""
