"""Device identity models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

VENDOR_ID = 0x1220
PRODUCT_ID_FULL = 0x8FE0
PRODUCT_ID_MINI = 0x8FE4


@dataclass(frozen=True)
class DeviceLocation:
    """Where a device was last seen on the USB bus.

    Not a live handle: the device may have been unplugged or re-enumerated
    at a different address since.
    """

    bus: int
    address: int

    def to_dict(self) -> dict:
        return {"bus": self.bus, "address": self.address}


@dataclass(frozen=True)
class DeviceDescriptor:
    """Identification read from an opened device."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID_FULL
    manufacturer: str = ""
    product: str = ""


class DeviceVariant(Enum):
    """Hardware variants, with the time each needs to prepare a response."""

    FULL = (PRODUCT_ID_FULL, "GoXLR", 0.003)
    MINI = (PRODUCT_ID_MINI, "GoXLR Mini", 0.010)

    def __init__(self, product_id: int, display_name: str, settle_delay: float) -> None:
        self.product_id = product_id
        self.display_name = display_name
        self.settle_delay = settle_delay

    @classmethod
    def from_product_id(cls, product_id: int) -> DeviceVariant:
        for variant in cls:
            if variant.product_id == product_id:
                return variant
        raise ValueError(f"Unknown GoXLR product ID {product_id:#06x}")


PRODUCT_IDS = frozenset(variant.product_id for variant in DeviceVariant)
