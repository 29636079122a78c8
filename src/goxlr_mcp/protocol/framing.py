"""Request/response frame builder and parser.

Requests and responses share the same 16-byte header::

    +------------+---------+---------------+-----------------+------------------+
    | Command ID | Length  | Command Index | Reserved        | Body             |
    | 4 bytes    | 2 bytes | 2 bytes       | 8 bytes (zero)  | ``Length`` bytes |
    +------------+---------+---------------+-----------------+------------------+

- Command ID: little-endian u32, see :mod:`.commands`
- Length: little-endian u16 byte count of the body
- Command Index: little-endian u16 sequence number used to pair a
  response with the request it answers
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..errors import MalformedResponse

HEADER_SIZE = 16
MAX_BODY_SIZE = 0xFFFF
MAX_COMMAND_INDEX = 0xFFFF

_HEADER = struct.Struct("<IHH8x")


@dataclass(frozen=True)
class FrameHeader:
    """Decoded 16-byte header."""

    command_id: int
    length: int
    sequence: int


@dataclass
class Frame:
    """A complete decoded frame."""

    command_id: int
    sequence: int
    body: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(command_id=0x{self.command_id:X}, sequence={self.sequence}, "
            f"body={self.body.hex(' ') if self.body else '(empty)'})"
        )


def build_frame(command_id: int, sequence: int, body: bytes = b"") -> bytes:
    """Build a request frame.

    Args:
        command_id: 32-bit command identifier.
        sequence: Command index for this request (0-65535).
        body: Command-specific payload, at most 65535 bytes.

    Returns:
        The 16-byte header followed by ``body``.
    """
    if len(body) > MAX_BODY_SIZE:
        raise ValueError(
            f"Body must be at most {MAX_BODY_SIZE} bytes, got {len(body)}"
        )
    if not 0 <= command_id <= 0xFFFFFFFF:
        raise ValueError(f"Command ID must fit in 32 bits, got {command_id:#x}")
    if not 0 <= sequence <= MAX_COMMAND_INDEX:
        raise ValueError(f"Command index must be 0-65535, got {sequence}")
    return _HEADER.pack(command_id, len(body), sequence) + bytes(body)


def parse_header(data: bytes) -> FrameHeader:
    """Decode the header at the start of ``data``.

    Raises:
        MalformedResponse: If ``data`` is shorter than the header.
    """
    if len(data) < HEADER_SIZE:
        raise MalformedResponse(
            f"Expected at least {HEADER_SIZE} header bytes, got {len(data)}"
        )
    command_id, length, sequence = _HEADER.unpack_from(data)
    return FrameHeader(command_id=command_id, length=length, sequence=sequence)


def parse_frame(data: bytes) -> Frame:
    """Decode a complete frame, checking the declared body length.

    Raises:
        MalformedResponse: If the header is truncated or the body length
            does not match the header.
    """
    header = parse_header(data)
    body = bytes(data[HEADER_SIZE:])
    if len(body) != header.length:
        raise MalformedResponse(
            f"Header declares {header.length} body bytes, got {len(body)}"
        )
    return Frame(command_id=header.command_id, sequence=header.sequence, body=body)
