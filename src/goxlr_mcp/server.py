"""MCP server entry point for the GoXLR.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import GoXLRError
from .models.device import DeviceLocation
from .protocol.commands import (
    ChannelName,
    ChannelState,
    FaderName,
    build_get_button_states,
    build_get_firmware_version,
    build_get_serial_number,
    build_reset_command_index,
    build_set_channel_state,
    build_set_channel_volume,
    build_set_fader,
)
from .protocol.framing import MAX_BODY_SIZE
from .protocol.parser import (
    parse_button_states,
    parse_firmware_version,
    parse_serial_number,
)
from .session import DeviceSession, open_session
from .transport.discovery import find_devices

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "goxlr",
    instructions="MCP server for TC-Helicon GoXLR and GoXLR Mini mixers",
)

# Global connection state
_session: DeviceSession | None = None
_location: DeviceLocation | None = None


def _get_session() -> DeviceSession:
    """Get the active device session, raising if not connected."""
    if _session is None:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _session


def _lookup(enum_cls, name: str):
    """Resolve a user-supplied name like 'line-in' to an enum member."""
    key = name.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls[key]
    except KeyError:
        valid = [member.name.lower() for member in enum_cls]
        raise ValueError(f"Unknown {enum_cls.__name__} '{name}'. Valid: {valid}") from None


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List the bus locations of all attached GoXLR devices."""
    return {"devices": [location.to_dict() for location in find_devices()]}


@mcp.tool()
def connect(bus: int | None = None, address: int | None = None) -> dict[str, Any]:
    """Open a session with a GoXLR.

    With no arguments, connects to the first device found. Reads the
    firmware version to confirm the device is answering.

    Args:
        bus: USB bus number of the device.
        address: USB address of the device on that bus.
    """
    global _session, _location
    if _session is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "model": _session.variant.display_name,
        }

    if (bus is None) != (address is None):
        return {"error": "Give both bus and address, or neither"}

    if bus is None:
        devices = find_devices()
        if not devices:
            return {"error": "No GoXLR found"}
        location = devices[0]
    else:
        location = DeviceLocation(bus=bus, address=address)

    session = open_session(location)
    _session, _location = session, location

    result: dict[str, Any] = {
        "connected": True,
        "model": session.variant.display_name,
        **location.to_dict(),
    }

    try:
        result["firmware"] = str(
            parse_firmware_version(session.execute(*build_get_firmware_version()))
        )
    except GoXLRError as e:
        logger.warning("Connected, but firmware query failed: %s", e)
        result["firmware"] = "unknown"

    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the session with the GoXLR."""
    global _session, _location
    if _session is None:
        return {"disconnected": True}
    _session.close()
    _session, _location = None, None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve model, firmware version and serial number."""
    session = _get_session()
    firmware = parse_firmware_version(session.execute(*build_get_firmware_version()))
    serial = parse_serial_number(session.execute(*build_get_serial_number()))
    return {
        "model": session.variant.display_name,
        "firmware": str(firmware),
        "serial": serial.serial,
        "manufactured": serial.manufactured,
        "command_index": session.sequence,
        **(_location.to_dict() if _location else {}),
    }


# ─── RAW PROTOCOL TOOLS ───────────────────────────────────────────────

@mcp.tool()
def send_command(command_id: int, body_hex: str = "") -> dict[str, Any]:
    """Send a raw command and return the response body.

    Args:
        command_id: 32-bit command identifier.
        body_hex: Request body as hex, e.g. "0a ff".
    """
    try:
        body = bytes.fromhex(body_hex)
    except ValueError:
        return {"error": f"Invalid hex body: {body_hex!r}"}
    if len(body) > MAX_BODY_SIZE:
        return {"error": f"Body must be at most {MAX_BODY_SIZE} bytes"}
    if not 0 <= command_id <= 0xFFFFFFFF:
        return {"error": "Command ID must fit in 32 bits"}

    response = _get_session().execute(command_id, body)
    return {"response_hex": response.hex(" "), "length": len(response)}


@mcp.tool()
def reset_sequence() -> dict[str, Any]:
    """Reset the command index on the host and the device."""
    session = _get_session()
    session.execute(*build_reset_command_index())
    return {"command_index": session.sequence}


# ─── MIXER TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def set_channel_volume(channel: str, volume: int) -> dict[str, Any]:
    """Set a channel's volume.

    Args:
        channel: Channel name (mic, line-in, console, system, game, chat,
                 sample, music, headphones, mic-monitor, line-out).
        volume: Volume level 0-255.
    """
    try:
        request = build_set_channel_volume(_lookup(ChannelName, channel), volume)
    except ValueError as e:
        return {"error": str(e)}
    _get_session().execute(*request)
    return {"channel": channel, "volume": volume}


@mcp.tool()
def set_channel_mute(channel: str, muted: bool) -> dict[str, Any]:
    """Mute or unmute a channel.

    Args:
        channel: Channel name.
        muted: True to mute.
    """
    try:
        name = _lookup(ChannelName, channel)
    except ValueError as e:
        return {"error": str(e)}
    state = ChannelState.MUTED if muted else ChannelState.UNMUTED
    _get_session().execute(*build_set_channel_state(name, state))
    return {"channel": channel, "muted": muted}


@mcp.tool()
def assign_fader(fader: str, channel: str) -> dict[str, Any]:
    """Assign a channel to one of the four faders.

    Args:
        fader: Fader letter (a-d).
        channel: Channel name.
    """
    try:
        request = build_set_fader(_lookup(FaderName, fader), _lookup(ChannelName, channel))
    except ValueError as e:
        return {"error": str(e)}
    _get_session().execute(*request)
    return {"fader": fader.upper(), "channel": channel}


@mcp.tool()
def get_button_states() -> dict[str, Any]:
    """Read pressed buttons, encoder positions and fader positions."""
    states = parse_button_states(_get_session().execute(*build_get_button_states()))
    return {
        "pressed": f"{states.pressed:#010x}",
        "encoders": list(states.encoders),
        "faders": list(states.faders),
    }


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("goxlr://channels")
def channels_resource() -> str:
    """Channel and fader names accepted by the mixer tools."""
    channels = ", ".join(member.name.lower().replace("_", "-") for member in ChannelName)
    faders = ", ".join(member.name.lower() for member in FaderName)
    return f"Channels: {channels}\nFaders: {faders}"


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
