"""Rack unit allocation.

A device occupies the closed range ``[position, position + height_u - 1]``.
Two devices in one cabinet must not overlap unless they start at the same
unit: devices sharing a starting unit are stacked and drawn side by side.

The functions here are pure. They take any objects exposing ``id``,
``position`` and ``height_u`` (store records or :class:`Slot`).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from rakit.exceptions import (
    CapacityExceededError,
    PositionConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rakit.utils.validation import InputValidator

MIN_SIZE_U = 4
MAX_SIZE_U = 60
DEFAULT_SIZE_U = 42
MAX_PORTS = 48


class Placed(Protocol):
    id: int | None
    position: int
    height_u: int


@dataclass(frozen=True)
class Slot:
    id: int | None
    position: int
    height_u: int


def _overlaps(device: Placed, start: int, end: int) -> bool:
    d_start = device.position
    d_end = device.position + device.height_u - 1
    return max(d_start, start) <= min(d_end, end)


def is_range_free(
    devices: Sequence[Placed],
    start: int,
    height: int,
    ignore_device_id: int | None = None,
) -> bool:
    """True when no device other than ``ignore_device_id`` intersects the range."""
    end = start + height - 1
    return not any(
        _overlaps(d, start, end)
        for d in devices
        if ignore_device_id is None or d.id != ignore_device_id
    )


def find_first_available_position(
    size_u: int, devices: Sequence[Placed], height: int
) -> int | None:
    """Lowest start unit whose whole range is free, or ``None``."""
    for start in range(1, size_u - height + 2):
        if is_range_free(devices, start, height):
            return start
    return None


def has_range_conflict(
    devices: Sequence[Placed],
    start: int,
    height: int,
    ignore_device_id: int | None = None,
) -> bool:
    """Like ``not is_range_free`` except devices starting at ``start`` stack."""
    end = start + height - 1
    for d in devices:
        if ignore_device_id is not None and d.id == ignore_device_id:
            continue
        if _overlaps(d, start, end) and d.position != start:
            return True
    return False


# ----------------------------------------------------------------------
# Field validators
# ----------------------------------------------------------------------
def validate_size_u(
    value: Any, min_size: int = MIN_SIZE_U, max_size: int = MAX_SIZE_U
) -> int:
    return InputValidator.validate_int_range(value, "sizeU", min_size, max_size)


def validate_height_u(value: Any, size_u: int) -> int:
    return InputValidator.validate_int_range(value, "heightU", 1, size_u)


def validate_number_of_ports(value: Any, max_ports: int = MAX_PORTS) -> int:
    return InputValidator.validate_int_range(value, "numberOfPorts", 1, max_ports)


@dataclass(frozen=True)
class CabinetUsage:
    size_u: int
    used_u: int
    free_u: int
    usage_percent: int
    device_count: int
    tallest_u: int

    def to_dict(self) -> dict[str, int]:
        return {
            "sizeU": self.size_u,
            "usedU": self.used_u,
            "freeU": self.free_u,
            "usagePercent": self.usage_percent,
            "deviceCount": self.device_count,
            "tallestU": self.tallest_u,
        }


class RackAllocator:
    """Placement decisions for one cabinet's current device list."""

    def __init__(self, size_u: int, devices: Sequence[Placed]) -> None:
        self.size_u = size_u
        self.devices = list(devices)

    def _find(self, device_id: int) -> Placed:
        for d in self.devices:
            if d.id == device_id:
                return d
        raise ResourceNotFoundError("Device not found", {"device_id": device_id})

    def plan_create(self, height_u: Any) -> int:
        """First-fit start unit for a new device of ``height_u`` units."""
        height = validate_height_u(height_u, self.size_u)
        position = find_first_available_position(self.size_u, self.devices, height)
        if position is None:
            raise CapacityExceededError(
                "No available space in cabinet",
                {"height_u": height, "size_u": self.size_u},
            )
        return position

    def plan_move(
        self,
        device_id: int,
        *,
        position: Any = None,
        height_u: Any = None,
    ) -> tuple[int, int]:
        """Validate a move and/or resize; returns ``(position, height_u)``.

        Omitted values keep the device's current geometry.
        """
        device = self._find(device_id)
        height = (
            device.height_u
            if height_u is None
            else validate_height_u(height_u, self.size_u)
        )
        start = (
            device.position
            if position is None
            else InputValidator.coerce_int(position, "position")
        )
        max_start = self.size_u - height + 1
        if start < 1 or start > max_start:
            raise ValidationError(
                "Position out of range", field="position", value=start, max=max_start
            )
        if has_range_conflict(self.devices, start, height, device.id):
            raise PositionConflictError(
                "Space already occupied",
                {"position": start, "height_u": height},
            )
        return start, height

    def check_resize_cabinet(self, new_size_u: int) -> None:
        """Refuse a cabinet height that would cut off a mounted device."""
        outside = [
            d.id for d in self.devices if d.position + d.height_u - 1 > new_size_u
        ]
        if outside:
            raise ValidationError(
                "Cabinet too small for mounted devices",
                field="sizeU",
                value=new_size_u,
                device_ids=outside,
            )

    def usage(self) -> CabinetUsage:
        used = sum(d.height_u for d in self.devices)
        return CabinetUsage(
            size_u=self.size_u,
            used_u=used,
            free_u=max(0, self.size_u - used),
            usage_percent=round(used / self.size_u * 100) if self.size_u else 0,
            device_count=len(self.devices),
            tallest_u=max((d.height_u for d in self.devices), default=0),
        )
