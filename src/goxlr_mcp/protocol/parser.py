"""Response body parsing for the query commands."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..errors import MalformedResponse

SERIAL_NUMBER_SIZE = 24


@dataclass
class FirmwareVersion:
    """Parsed system info (firmware version) response."""

    major: int
    minor: int
    patch: int
    build: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}.{self.build}"


@dataclass
class SerialNumber:
    """Parsed hardware info (serial number) response."""

    serial: str
    manufactured: str


@dataclass
class ButtonStates:
    """Parsed button state response."""

    pressed: int  # bitmask, one bit per button
    encoders: tuple[int, ...]
    faders: tuple[int, ...]


def _require(body: bytes, size: int, what: str) -> None:
    if len(body) < size:
        raise MalformedResponse(
            f"{what} response needs {size} bytes, got {len(body)}"
        )


def _c_string(data: bytes) -> str:
    return data.split(b"\x00")[0].decode("ascii", errors="replace")


def parse_firmware_version(body: bytes) -> FirmwareVersion:
    """Parse the firmware version block.

    The first u32 packs the version as ``major << 12 | minor << 8 | patch``;
    the second u32 is the build number.
    """
    _require(body, 8, "Firmware version")
    packed, build = struct.unpack_from("<II", body)
    return FirmwareVersion(
        major=packed >> 12,
        minor=(packed >> 8) & 0xF,
        patch=packed & 0xFF,
        build=build,
    )


def parse_serial_number(body: bytes) -> SerialNumber:
    """Parse the serial number block: a 24-byte null-padded serial then the date."""
    _require(body, SERIAL_NUMBER_SIZE, "Serial number")
    return SerialNumber(
        serial=_c_string(body[:SERIAL_NUMBER_SIZE]),
        manufactured=_c_string(body[SERIAL_NUMBER_SIZE:]),
    )


def parse_button_states(body: bytes) -> ButtonStates:
    """Parse the button state block.

    Bytes 0-3 hold the pressed-button bitmask, 4-7 the four encoder
    positions and 8-11 the four fader positions.
    """
    _require(body, 12, "Button state")
    (pressed,) = struct.unpack_from("<I", body)
    return ButtonStates(
        pressed=pressed,
        encoders=tuple(body[4:8]),
        faders=tuple(body[8:12]),
    )
