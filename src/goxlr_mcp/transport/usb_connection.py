"""USB control-transfer transport for the GoXLR.

The GoXLR's command channel is carried entirely over vendor control
transfers on endpoint 0, addressed to the interface. Requests are written
with request code 2 and responses polled with request code 3. The
interface is never claimed: the kernel's audio driver keeps it.
"""

from __future__ import annotations

import errno
import logging
from typing import Protocol, runtime_checkable

import usb.core
import usb.util

from ..errors import TransientNotReady, TransportError
from ..models.device import DeviceDescriptor

logger = logging.getLogger(__name__)

REQUEST_COMMAND = 2
REQUEST_RESPONSE = 3
MAX_RESPONSE_SIZE = 1040
TRANSFER_TIMEOUT_MS = 1000

REQUEST_TYPE_OUT = usb.util.build_request_type(
    usb.util.CTRL_OUT, usb.util.CTRL_TYPE_VENDOR, usb.util.CTRL_RECIPIENT_INTERFACE
)
REQUEST_TYPE_IN = usb.util.build_request_type(
    usb.util.CTRL_IN, usb.util.CTRL_TYPE_VENDOR, usb.util.CTRL_RECIPIENT_INTERFACE
)


@runtime_checkable
class Transport(Protocol):
    """Raw control-transfer access to one open device.

    :class:`USBTransport` talks to real hardware; tests substitute a
    scripted fake.
    """

    def write_control(self, request: int, data: bytes) -> None:
        """Send ``data`` to the device with vendor request ``request``.

        Raises:
            TransportError: If the transfer fails.
        """
        ...

    def read_control(self, request: int, length: int) -> bytes:
        """Read up to ``length`` bytes with vendor request ``request``.

        Raises:
            TransientNotReady: If the device has nothing to return yet.
            TransportError: If the transfer fails for any other reason.
        """
        ...

    def close(self) -> None:
        ...


class USBTransport:
    """Control transfers to a pyusb device.

    Usage::

        transport = USBTransport(usb.core.find(idVendor=..., idProduct=...))
        transport.write_control(REQUEST_COMMAND, frame)
        response = transport.read_control(REQUEST_RESPONSE, MAX_RESPONSE_SIZE)
        transport.close()
    """

    def __init__(self, device: usb.core.Device, timeout_ms: int = TRANSFER_TIMEOUT_MS) -> None:
        self._device = device
        self._timeout_ms = timeout_ms

    @property
    def device(self) -> usb.core.Device | None:
        return self._device

    @property
    def connected(self) -> bool:
        return self._device is not None

    def _require_device(self) -> usb.core.Device:
        if self._device is None:
            raise TransportError("Transport is closed")
        return self._device

    def open(self) -> DeviceDescriptor:
        """Open the device handle and read its descriptor.

        pyusb opens handles lazily; reading the string descriptors forces
        the open so permission problems surface here rather than on the
        first command.

        Raises:
            TransportError: If the device cannot be opened.
        """
        device = self._require_device()
        try:
            usb.util.get_langids(device)
            manufacturer = usb.util.get_string(device, device.iManufacturer) or ""
            product = usb.util.get_string(device, device.iProduct) or ""
        except (usb.core.USBError, ValueError) as e:
            self.close()
            raise TransportError(f"Could not open device: {e}") from e

        descriptor = DeviceDescriptor(
            vendor_id=device.idVendor,
            product_id=device.idProduct,
            manufacturer=manufacturer,
            product=product,
        )
        logger.info("Connected via pyusb: %s %s", manufacturer, product)
        return descriptor

    def write_control(self, request: int, data: bytes) -> None:
        device = self._require_device()
        try:
            device.ctrl_transfer(
                REQUEST_TYPE_OUT, request, 0, 0, data, timeout=self._timeout_ms
            )
        except usb.core.USBError as e:
            raise TransportError(f"Control write (request {request}) failed: {e}") from e

    def read_control(self, request: int, length: int) -> bytes:
        device = self._require_device()
        try:
            data = device.ctrl_transfer(
                REQUEST_TYPE_IN, request, 0, 0, length, timeout=self._timeout_ms
            )
        except usb.core.USBError as e:
            # The firmware stalls the poll while the response is still pending
            if e.errno == errno.EPIPE:
                raise TransientNotReady("Response not ready") from e
            raise TransportError(f"Control read (request {request}) failed: {e}") from e
        return bytes(data)

    def close(self) -> None:
        """Release libusb resources held for the device."""
        if self._device is None:
            return

        try:
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            logger.info("Disconnected")
