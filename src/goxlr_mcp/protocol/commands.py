"""Command identifiers and request builders.

Most command IDs are a 20-bit family code shifted left by 12 bits, with
the low 12 bits selecting a channel, fader or sub-query within the family.
``Command.RESET_COMMAND_INDEX`` (0) is special: it addresses no hardware
function and tells the firmware to restart command index numbering.
"""

from __future__ import annotations

from enum import IntEnum

FAMILY_SHIFT = 12


class Command(IntEnum):
    """Command family codes (before shifting)."""

    RESET_COMMAND_INDEX = 0x000
    GET_BUTTON_STATES = 0x800
    SET_EFFECT_PARAMETERS = 0x801
    SET_SCRIBBLE = 0x802
    SET_COLOUR_MAP = 0x803
    SET_ROUTING = 0x804
    SET_FADER = 0x805
    SET_CHANNEL_VOLUME = 0x806
    SET_ENCODER_MODE = 0x807
    SET_BUTTON_STATES = 0x808
    SET_CHANNEL_STATE = 0x809
    SET_ENCODER_VALUE = 0x80A
    SET_MICROPHONE_PARAMETERS = 0x80B
    GET_MICROPHONE_LEVEL = 0x80C
    GET_HARDWARE_INFO = 0x80F


class SystemInfoCommand(IntEnum):
    """System info queries. These are complete command IDs, not families."""

    SUPPORTS_DCP_CATEGORY = 1
    FIRMWARE_VERSION = 2


class HardwareInfoCommand(IntEnum):
    """Sub-selectors for ``Command.GET_HARDWARE_INFO``."""

    FIRMWARE_VERSION = 0
    SERIAL_NUMBER = 1


class ChannelName(IntEnum):
    MIC = 0
    LINE_IN = 1
    CONSOLE = 2
    SYSTEM = 3
    GAME = 4
    CHAT = 5
    SAMPLE = 6
    MUSIC = 7
    HEADPHONES = 8
    MIC_MONITOR = 9
    LINE_OUT = 10


class FaderName(IntEnum):
    A = 0
    B = 1
    C = 2
    D = 3


class ChannelState(IntEnum):
    UNMUTED = 0
    MUTED = 1


RESET_COMMAND_ID = int(Command.RESET_COMMAND_INDEX)


def command_id(command: Command, index: int = 0) -> int:
    """Compose a 32-bit command ID from a family and a sub-selector."""
    if not 0 <= index < (1 << FAMILY_SHIFT):
        raise ValueError(f"Sub-selector must be 0-4095, got {index}")
    return (int(command) << FAMILY_SHIFT) | index


def build_reset_command_index() -> tuple[int, bytes]:
    """Build the command that resets the device's command index to 0."""
    return RESET_COMMAND_ID, b""


def build_get_firmware_version() -> tuple[int, bytes]:
    """Build a system info query for the firmware version block."""
    return int(SystemInfoCommand.FIRMWARE_VERSION), b""


def build_get_serial_number() -> tuple[int, bytes]:
    """Build a hardware info query for the serial number and build date."""
    return (
        command_id(Command.GET_HARDWARE_INFO, HardwareInfoCommand.SERIAL_NUMBER),
        b"",
    )


def build_get_button_states() -> tuple[int, bytes]:
    """Build a query for button, encoder and fader state."""
    return command_id(Command.GET_BUTTON_STATES), b""


def build_set_channel_volume(channel: ChannelName, volume: int) -> tuple[int, bytes]:
    """Build a command to set a channel's volume.

    Args:
        channel: Target channel.
        volume: Volume level 0-255.
    """
    if not 0 <= volume <= 255:
        raise ValueError(f"Volume must be 0-255, got {volume}")
    return command_id(Command.SET_CHANNEL_VOLUME, channel), bytes([volume])


def build_set_channel_state(channel: ChannelName, state: ChannelState) -> tuple[int, bytes]:
    """Build a command to mute or unmute a channel."""
    return (
        command_id(Command.SET_CHANNEL_STATE, channel),
        bytes([int(state), 0, 0, 0]),
    )


def build_set_fader(fader: FaderName, channel: ChannelName) -> tuple[int, bytes]:
    """Build a command to assign a channel to a fader."""
    return command_id(Command.SET_FADER, fader), bytes([int(channel), 0, 0, 0])
