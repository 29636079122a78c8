"""Tests for command execution, polling and command index resync."""

from unittest.mock import MagicMock, patch

import pytest

from goxlr_mcp.errors import (
    DeviceNotFound,
    MalformedResponse,
    ResponseTimeout,
    ResyncExhausted,
    TransientNotReady,
    TransportError,
)
from goxlr_mcp.models.device import (
    PRODUCT_ID_MINI,
    DeviceDescriptor,
    DeviceLocation,
    DeviceVariant,
)
from goxlr_mcp.protocol.commands import RESET_COMMAND_ID, Command, command_id
from goxlr_mcp.protocol.framing import MAX_COMMAND_INDEX, build_frame
from goxlr_mcp.session import POLL_ATTEMPTS, DeviceSession, open_session
from goxlr_mcp.transport.usb_connection import USBTransport

VOLUME = command_id(Command.SET_CHANNEL_VOLUME, 3)


def _not_ready(count: int) -> list:
    return [TransientNotReady("pending") for _ in range(count)]


def test_sequence_starts_at_one_and_increments(make_session):
    """N commands on a fresh session use indexes 1..N in order."""
    session, transport = make_session()
    for _ in range(5):
        session.execute(VOLUME, b"\x80")
    assert transport.sequences == [1, 2, 3, 4, 5]
    assert session.sequence == 5


def test_execute_returns_response_body(make_session, reply):
    session, transport = make_session([reply(b"\x01\x02\x03")])
    assert session.execute(VOLUME, b"\x80") == b"\x01\x02\x03"


def test_request_is_framed(make_session):
    """The written request carries the command ID, index and body."""
    session, transport = make_session()
    session.execute(VOLUME, b"\x80")
    assert transport.writes == [build_frame(VOLUME, 1, b"\x80")]


def test_reset_uses_index_zero_and_restarts_numbering(make_session):
    session, transport = make_session()
    session.execute(VOLUME)
    session.execute(VOLUME)
    session.execute(RESET_COMMAND_ID)
    session.execute(VOLUME)
    assert transport.sequences == [1, 2, 0, 1]
    assert transport.command_ids[2] == RESET_COMMAND_ID


def test_index_exhaustion_inserts_reset(make_session):
    """At the maximum index a reset is sent first and numbering restarts at 1."""
    session, transport = make_session()
    session._sequence = MAX_COMMAND_INDEX
    session.execute(VOLUME)
    assert transport.command_ids == [RESET_COMMAND_ID, VOLUME]
    assert transport.sequences == [0, 1]
    assert session.sequence == 1


def test_mismatched_exhaustion_reset_is_terminal(make_session, reply_with_sequence):
    """The reset sent at the maximum index is not retried, and the command is never sent."""
    session, transport = make_session([reply_with_sequence(5)])
    session._sequence = MAX_COMMAND_INDEX

    with pytest.raises(ResyncExhausted):
        session.execute(VOLUME)
    assert transport.command_ids == [RESET_COMMAND_ID]
    assert VOLUME not in transport.command_ids
    assert transport.reads == 1


def test_not_ready_until_last_attempt_succeeds(make_session, reply):
    """19 stalls followed by a response on the 20th poll is a success."""
    script = _not_ready(POLL_ATTEMPTS - 1) + [reply(b"ok")]
    session, transport = make_session(script)
    assert session.execute(VOLUME) == b"ok"
    assert transport.reads == POLL_ATTEMPTS


def test_not_ready_on_every_attempt_times_out(make_session):
    script = _not_ready(POLL_ATTEMPTS + 5)
    session, transport = make_session(script)
    with pytest.raises(ResponseTimeout):
        session.execute(VOLUME)
    assert transport.reads == POLL_ATTEMPTS
    assert len(transport.writes) == 1


def test_settle_delay_follows_variant(make_session, no_sleep):
    """The Mini waits 10 ms after the write and between polls."""
    session, transport = make_session(_not_ready(2), variant=DeviceVariant.MINI)
    session.execute(VOLUME)
    delays = [c.args[0] for c in no_sleep.call_args_list]
    assert delays == [0.010, 0.010, 0.010]


def test_full_variant_settle_delay(make_session):
    session, _ = make_session()
    assert session.settle_delay == 0.003


def test_single_mismatch_resyncs_and_retries(make_session, reply, reply_with_sequence):
    """A mismatched index triggers a reset and one retry of the original command."""
    script = [reply_with_sequence(7, b"stale"), reply(), reply(b"fresh")]
    session, transport = make_session(script)

    assert session.execute(VOLUME, b"\x40") == b"fresh"
    assert transport.command_ids == [VOLUME, RESET_COMMAND_ID, VOLUME]
    assert transport.sequences == [1, 0, 1]
    assert transport.writes[2] == build_frame(VOLUME, 1, b"\x40")


def test_double_mismatch_raises_resync_exhausted(make_session, reply, reply_with_sequence):
    """A second mismatch after resync is terminal; no third cycle is attempted."""
    script = [reply_with_sequence(7), reply(), reply_with_sequence(9)]
    session, transport = make_session(script)

    with pytest.raises(ResyncExhausted):
        session.execute(VOLUME)
    assert transport.command_ids == [VOLUME, RESET_COMMAND_ID, VOLUME]
    assert transport.reads == 3


def test_mismatched_reset_during_resync_is_terminal(make_session, reply_with_sequence):
    script = [reply_with_sequence(7), reply_with_sequence(3)]
    session, transport = make_session(script)

    with pytest.raises(ResyncExhausted):
        session.execute(VOLUME)
    assert transport.command_ids == [VOLUME, RESET_COMMAND_ID]


def test_mismatched_response_never_returned(make_session, reply_with_sequence):
    """A response for another index is never handed back as a success."""
    script = [reply_with_sequence(2, b"wrong"), reply_with_sequence(0), reply_with_sequence(2, b"wrong")]
    session, _ = make_session(script)
    with pytest.raises(ResyncExhausted):
        session.execute(VOLUME)


def test_short_response_is_malformed(make_session):
    session, _ = make_session([b"\x00" * 10])
    with pytest.raises(MalformedResponse):
        session.execute(VOLUME)


def test_length_disagreement_is_malformed(make_session):
    """A matched response whose body length disagrees with its header is rejected."""
    response = build_frame(VOLUME, 1, b"\x01\x02") + b"\x03"
    session, _ = make_session([response])
    with pytest.raises(MalformedResponse):
        session.execute(VOLUME)


def test_write_failure_is_surfaced():
    """A failed write aborts the command without polling."""
    transport = MagicMock()
    transport.write_control.side_effect = TransportError("pipe")
    session = DeviceSession(transport, DeviceVariant.FULL)
    with pytest.raises(TransportError):
        session.execute(VOLUME)
    transport.read_control.assert_not_called()


def test_read_transport_error_is_not_retried(make_session):
    session, transport = make_session([TransportError("no such device")])
    with pytest.raises(TransportError):
        session.execute(VOLUME)
    assert transport.reads == 1


def test_session_reusable_after_failure(make_session):
    session, transport = make_session(_not_ready(POLL_ATTEMPTS))
    with pytest.raises(ResponseTimeout):
        session.execute(VOLUME)
    assert session.execute(VOLUME, b"\x01") == b""
    assert transport.sequences == [1, 2]


def test_context_manager_closes_transport(make_session):
    session, transport = make_session()
    with session:
        session.execute(VOLUME)
    assert transport.closed


def test_open_session_selects_variant():
    """The opened descriptor picks the variant and is kept on the session."""
    descriptor = DeviceDescriptor(product_id=PRODUCT_ID_MINI, product="GoXLR Mini")
    with patch("goxlr_mcp.session.resolve_device", return_value=MagicMock()) as resolve, \
            patch.object(USBTransport, "open", return_value=descriptor) as open_device:
        session = open_session(DeviceLocation(bus=1, address=4))

    resolve.assert_called_once_with(DeviceLocation(bus=1, address=4))
    open_device.assert_called_once_with()
    assert session.descriptor is descriptor
    assert session.variant is DeviceVariant.MINI
    assert session.settle_delay == 0.010
    assert session.sequence == 0


def test_open_session_device_gone():
    with patch(
        "goxlr_mcp.session.resolve_device",
        side_effect=DeviceNotFound("gone"),
    ):
        with pytest.raises(DeviceNotFound):
            open_session(DeviceLocation(bus=1, address=4))


def test_open_session_unopenable_device():
    """A device that cannot be opened fails at open, not on the first command."""
    with patch("goxlr_mcp.session.resolve_device", return_value=MagicMock()), \
            patch.object(USBTransport, "open", side_effect=TransportError("Access denied")):
        with pytest.raises(TransportError):
            open_session(DeviceLocation(bus=1, address=4))
