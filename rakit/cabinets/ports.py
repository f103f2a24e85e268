"""Port-set transitions for port-aware devices.

A device's ports are derived state: ports ``1..number_of_ports`` exist exactly
while ``port_aware`` is set. :func:`plan_port_transition` compares the
persisted state with the requested one and says which ports to create and
which to delete; surviving ports keep their stored fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rakit.exceptions import ValidationError


@dataclass(frozen=True)
class PortState:
    port_aware: bool
    number_of_ports: int | None = None


@dataclass(frozen=True)
class PortPlan:
    """``delete_above`` removes ports numbered above it; ``0`` removes all."""

    create: list[int] = field(default_factory=list)
    delete_above: int | None = None

    @property
    def is_noop(self) -> bool:
        return not self.create and self.delete_above is None


def plan_port_transition(old: PortState, new: PortState) -> PortPlan:
    if not new.port_aware:
        # Turning port awareness off drops everything; off -> off ignores the count.
        return PortPlan(delete_above=0) if old.port_aware else PortPlan()
    if not new.number_of_ports:
        raise ValidationError(
            "numberOfPorts required for port-aware devices", field="numberOfPorts"
        )
    target = new.number_of_ports
    current = (old.number_of_ports or 0) if old.port_aware else 0
    if target > current:
        return PortPlan(create=list(range(current + 1, target + 1)))
    if target < current:
        return PortPlan(delete_above=target)
    return PortPlan()
