import pytest

from rakit.cabinets.ports import PortPlan, PortState, plan_port_transition
from rakit.exceptions import ValidationError


@pytest.mark.parametrize(
    "old, new, expected",
    [
        (PortState(False), PortState(False, 12), PortPlan()),
        (PortState(False), PortState(True, 3), PortPlan(create=[1, 2, 3])),
        (PortState(True, 8), PortState(False, 8), PortPlan(delete_above=0)),
        (PortState(True, 8), PortState(True, 10), PortPlan(create=[9, 10])),
        (PortState(True, 24), PortState(True, 10), PortPlan(delete_above=10)),
        (PortState(True, 8), PortState(True, 8), PortPlan()),
        # A stale count on a device that was not port-aware is ignored.
        (PortState(False, 8), PortState(True, 2), PortPlan(create=[1, 2])),
    ],
)
def test_transition_table(old, new, expected):
    assert plan_port_transition(old, new) == expected


def test_enabling_without_count_is_rejected():
    with pytest.raises(ValidationError, match="numberOfPorts required"):
        plan_port_transition(PortState(False), PortState(True, None))


def test_noop_detection():
    assert PortPlan().is_noop
    assert not PortPlan(delete_above=0).is_noop
    assert not PortPlan(create=[1]).is_noop
