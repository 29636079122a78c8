"""Shared fixtures: a scripted stand-in for the USB transport."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from goxlr_mcp.models.device import DeviceVariant
from goxlr_mcp.protocol.framing import build_frame, parse_header
from goxlr_mcp.session import DeviceSession
from goxlr_mcp.transport.usb_connection import REQUEST_COMMAND, REQUEST_RESPONSE


def _reply(body: bytes = b""):
    """A scripted read answering whatever request was written last."""

    def _answer(request: bytes) -> bytes:
        header = parse_header(request)
        return build_frame(header.command_id, header.sequence, body)

    return _answer


def _reply_with_sequence(sequence: int, body: bytes = b""):
    """A scripted read answering a specific command index."""

    def _answer(request: bytes) -> bytes:
        return build_frame(parse_header(request).command_id, sequence, body)

    return _answer


class ScriptedTransport:
    """Plays back a list of read results.

    Each script entry is an exception to raise, raw bytes to return, or a
    callable given the last written request. Once the script runs out,
    every read answers the last request with an empty body.
    """

    def __init__(self, script=None) -> None:
        self.script = list(script or [])
        self.writes: list[bytes] = []
        self.reads = 0
        self.closed = False

    @property
    def sequences(self) -> list[int]:
        return [parse_header(w).sequence for w in self.writes]

    @property
    def command_ids(self) -> list[int]:
        return [parse_header(w).command_id for w in self.writes]

    def write_control(self, request: int, data: bytes) -> None:
        assert request == REQUEST_COMMAND
        self.writes.append(bytes(data))

    def read_control(self, request: int, length: int) -> bytes:
        assert request == REQUEST_RESPONSE
        self.reads += 1
        if not self.script:
            return _reply()(self.writes[-1])
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(self.writes[-1])
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def no_sleep():
    """Make settle delays instantaneous, recording each requested delay."""
    with patch("goxlr_mcp.session.time.sleep") as sleep:
        yield sleep


@pytest.fixture
def make_session():
    def _make(script=None, variant: DeviceVariant = DeviceVariant.FULL):
        transport = ScriptedTransport(script)
        return DeviceSession(transport, variant), transport

    return _make


@pytest.fixture
def reply():
    return _reply


@pytest.fixture
def reply_with_sequence():
    return _reply_with_sequence
