"""Transport layer: device discovery and USB control transfers."""

from .discovery import find_devices, resolve_device
from .usb_connection import Transport, USBTransport
