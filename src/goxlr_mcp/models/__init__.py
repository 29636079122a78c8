"""Data models for device identity."""

from .device import DeviceLocation, DeviceVariant
