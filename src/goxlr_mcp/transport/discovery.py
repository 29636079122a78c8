"""Locate attached GoXLR devices."""

from __future__ import annotations

import logging

import usb.core

from ..errors import DeviceNotFound
from ..models.device import PRODUCT_IDS, VENDOR_ID, DeviceLocation

logger = logging.getLogger(__name__)


def _is_goxlr(device: usb.core.Device) -> bool:
    return device.idVendor == VENDOR_ID and device.idProduct in PRODUCT_IDS


def find_devices() -> list[DeviceLocation]:
    """List the bus locations of every attached GoXLR.

    No device is opened. A platform that cannot enumerate USB at all is
    treated the same as one with nothing plugged in, so callers waiting
    for a device should poll.
    """
    try:
        devices = list(usb.core.find(find_all=True))
    except (usb.core.USBError, usb.core.NoBackendError) as e:
        logger.debug("USB enumeration failed: %s", e)
        return []

    found = [
        DeviceLocation(bus=device.bus, address=device.address)
        for device in devices
        if _is_goxlr(device)
    ]
    logger.debug("Found %d GoXLR device(s)", len(found))
    return found


def resolve_device(location: DeviceLocation) -> usb.core.Device:
    """Look up the live device currently at ``location``.

    Raises:
        DeviceNotFound: If no GoXLR is at that bus and address any more.
    """
    try:
        device = usb.core.find(bus=location.bus, address=location.address)
    except (usb.core.USBError, usb.core.NoBackendError) as e:
        raise DeviceNotFound(
            f"Could not enumerate USB devices looking for "
            f"bus {location.bus} address {location.address}: {e}"
        ) from e

    if device is None or not _is_goxlr(device):
        raise DeviceNotFound(
            f"No GoXLR at bus {location.bus} address {location.address}"
        )
    return device
