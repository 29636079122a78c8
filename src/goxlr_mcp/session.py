"""Command execution against an open GoXLR.

Every command is sent with a command index that the firmware echoes back
in its response. The firmware answers asynchronously: after a write the
host polls for the response, and the device stalls the poll until it is
ready. A response carrying a different command index means host and
device have fallen out of step; the session then resets the index on
both sides and sends the command once more.

A session is not thread safe. Only one command may be in flight at a time.
"""

from __future__ import annotations

import logging
import time

from .errors import (
    MalformedResponse,
    ResponseTimeout,
    ResyncExhausted,
    SequenceMismatch,
    TransientNotReady,
)
from .models.device import DeviceDescriptor, DeviceLocation, DeviceVariant
from .protocol.commands import RESET_COMMAND_ID
from .protocol.framing import HEADER_SIZE, MAX_COMMAND_INDEX, build_frame, parse_header
from .transport.discovery import resolve_device
from .transport.usb_connection import (
    MAX_RESPONSE_SIZE,
    REQUEST_COMMAND,
    REQUEST_RESPONSE,
    Transport,
    USBTransport,
)

logger = logging.getLogger(__name__)

POLL_ATTEMPTS = 20


class DeviceSession:
    """An open GoXLR and its command index.

    Usage::

        with open_session(find_devices()[0]) as session:
            body = session.execute(command_id, payload)
    """

    def __init__(
        self,
        transport: Transport,
        variant: DeviceVariant,
        poll_attempts: int = POLL_ATTEMPTS,
        descriptor: DeviceDescriptor | None = None,
    ) -> None:
        self._transport = transport
        self._variant = variant
        self._descriptor = descriptor or DeviceDescriptor(product_id=variant.product_id)
        self._settle_delay = variant.settle_delay
        self._poll_attempts = poll_attempts
        self._sequence = 0

    @property
    def variant(self) -> DeviceVariant:
        return self._variant

    @property
    def descriptor(self) -> DeviceDescriptor:
        return self._descriptor

    @property
    def settle_delay(self) -> float:
        """Seconds to wait after a write, and between polls, for a response."""
        return self._settle_delay

    @property
    def sequence(self) -> int:
        """Command index used by the most recent request."""
        return self._sequence

    def execute(self, command_id: int, body: bytes = b"") -> bytes:
        """Send a command and return the body of its response.

        If the response answers a different command index, the index is
        reset and the command sent again, once.

        Raises:
            TransportError: If a control transfer fails.
            ResponseTimeout: If the device never produced a response.
            MalformedResponse: If the response could not be decoded.
            ResyncExhausted: If the command index was still out of step
                after the reset and retry.
        """
        retry = False
        while True:
            try:
                return self._perform_request(command_id, body)
            except SequenceMismatch as e:
                if retry:
                    logger.warning("Resync failed for command 0x%X: %s", command_id, e)
                    raise ResyncExhausted(
                        f"Command 0x{command_id:X} still out of step after resync"
                    ) from e
                logger.debug("Attempting resync and retry of command 0x%X", command_id)
                self._reset_command_index()
                logger.debug("Resync complete, retrying command 0x%X", command_id)
                retry = True

    def _reset_command_index(self) -> None:
        """Send a single, non-retried index reset."""
        try:
            self._perform_request(RESET_COMMAND_ID, b"")
        except SequenceMismatch as e:
            raise ResyncExhausted("Command index reset was not acknowledged") from e

    def _next_sequence(self, command_id: int) -> int:
        if command_id == RESET_COMMAND_ID:
            self._sequence = 0
            return 0
        if self._sequence == MAX_COMMAND_INDEX:
            logger.debug("Command index exhausted, resetting")
            self._reset_command_index()
        self._sequence += 1
        return self._sequence

    def _perform_request(self, command_id: int, body: bytes) -> bytes:
        """One send-and-poll cycle.

        Raises:
            SequenceMismatch: If the response answered another request.
        """
        sequence = self._next_sequence(command_id)
        request = build_frame(command_id, sequence, body)

        self._transport.write_control(REQUEST_COMMAND, request)
        time.sleep(self._settle_delay)

        for attempt in range(1, self._poll_attempts + 1):
            try:
                response = self._transport.read_control(REQUEST_RESPONSE, MAX_RESPONSE_SIZE)
            except TransientNotReady:
                logger.debug(
                    "Response not arrived yet for command 0x%X, sleeping and "
                    "retrying (attempt %d of %d)",
                    command_id, attempt, self._poll_attempts,
                )
                time.sleep(self._settle_delay)
                continue

            header = parse_header(response)
            response_body = bytes(response[HEADER_SIZE:])

            if header.sequence != sequence:
                logger.debug(
                    "Mismatched command index: expected %d, received %d "
                    "(request %s, response header %s)",
                    sequence, header.sequence,
                    request[:HEADER_SIZE].hex(" "), response[:HEADER_SIZE].hex(" "),
                )
                raise SequenceMismatch(sequence, header.sequence)

            if len(response_body) != header.length:
                raise MalformedResponse(
                    f"Response to command 0x{command_id:X} declares "
                    f"{header.length} body bytes, got {len(response_body)}"
                )
            return response_body

        logger.warning(
            "No response to command 0x%X after %d attempts, possible dead device?",
            command_id, self._poll_attempts,
        )
        raise ResponseTimeout(
            f"No response to command 0x{command_id:X} after {self._poll_attempts} polls"
        )

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> DeviceSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def open_session(location: DeviceLocation) -> DeviceSession:
    """Open the GoXLR at ``location``.

    Raises:
        DeviceNotFound: If no GoXLR is at that location any more.
        TransportError: If the device cannot be opened.
    """
    transport = USBTransport(resolve_device(location))
    descriptor = transport.open()
    variant = DeviceVariant.from_product_id(descriptor.product_id)
    logger.info(
        "Opened %s at bus %d address %d", variant.display_name, location.bus, location.address
    )
    return DeviceSession(transport, variant, descriptor=descriptor)
