"""Rack inventory: cabinets, unit allocation and device ports."""

from .allocator import RackAllocator
from .ports import PortPlan, PortState, plan_port_transition
from .service import CabinetService
from .store import CabinetRecord, CabinetStore, DeviceRecord, PortRecord

__all__ = [
    "RackAllocator",
    "PortPlan",
    "PortState",
    "plan_port_transition",
    "CabinetService",
    "CabinetStore",
    "CabinetRecord",
    "DeviceRecord",
    "PortRecord",
]
