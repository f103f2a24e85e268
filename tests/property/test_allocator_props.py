from hypothesis import given
from hypothesis import strategies as st

from rakit.cabinets.allocator import (
    RackAllocator,
    Slot,
    find_first_available_position,
    has_range_conflict,
    is_range_free,
)
from rakit.exceptions import CapacityExceededError


def _fill(size_u: int, heights: list[int]) -> list[Slot]:
    placed: list[Slot] = []
    for device_id, height in enumerate(heights, start=1):
        if height > size_u:
            continue
        try:
            position = RackAllocator(size_u, placed).plan_create(height)
        except CapacityExceededError:
            continue
        placed.append(Slot(device_id, position, height))
    return placed


@given(
    size_u=st.integers(min_value=4, max_value=60),
    heights=st.lists(st.integers(min_value=1, max_value=8), max_size=30),
)
def test_first_fit_never_overlaps_and_stays_inside(size_u, heights):
    placed = _fill(size_u, heights)
    for device in placed:
        assert 1 <= device.position
        assert device.position + device.height_u - 1 <= size_u
        others = [d for d in placed if d.id != device.id]
        assert is_range_free(others, device.position, device.height_u)


@given(
    size_u=st.integers(min_value=4, max_value=60),
    heights=st.lists(st.integers(min_value=1, max_value=8), max_size=20),
    height=st.integers(min_value=1, max_value=8),
)
def test_first_fit_is_the_lowest_free_start(size_u, heights, height):
    placed = _fill(size_u, heights)
    position = find_first_available_position(size_u, placed, height)
    if position is None:
        assert all(
            not is_range_free(placed, start, height)
            for start in range(1, size_u - height + 2)
        )
    else:
        assert is_range_free(placed, position, height)
        assert all(
            not is_range_free(placed, start, height) for start in range(1, position)
        )


@given(
    start=st.integers(min_value=1, max_value=40),
    height=st.integers(min_value=1, max_value=10),
    other_height=st.integers(min_value=1, max_value=10),
)
def test_same_start_always_stacks(start, height, other_height):
    devices = [Slot(1, start, height)]
    assert not has_range_conflict(devices, start, other_height)
