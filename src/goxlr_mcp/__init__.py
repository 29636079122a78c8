"""Host-side driver and MCP server for TC-Helicon GoXLR mixers."""

from .errors import (
    GoXLRError,
    DeviceNotFound,
    TransportError,
    ResponseTimeout,
    MalformedResponse,
    ResyncExhausted,
)
from .models.device import DeviceLocation, DeviceVariant
from .session import DeviceSession, open_session
from .transport.discovery import find_devices
