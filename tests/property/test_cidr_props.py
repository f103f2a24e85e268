from hypothesis import given
from hypothesis import strategies as st

from rakit.network.cidr import (
    SNAPSHOT_PREFIX_BOUNDS,
    contains,
    describe_network,
    enumerate_hosts,
    format_address,
    parse_address,
)

addresses = st.integers(min_value=0, max_value=0xFFFFFFFF)


@given(value=addresses)
def test_format_then_parse_is_identity(value: int):
    assert parse_address(format_address(value)) == value


@given(value=addresses, prefix=st.integers(min_value=20, max_value=32))
def test_enumeration_matches_descriptor(value: int, prefix: int):
    net = describe_network(
        f"{format_address(value)}/{prefix}", prefix_bounds=SNAPSHOT_PREFIX_BOUNDS
    )
    assert net is not None
    hosts = enumerate_hosts(net)
    assert len(hosts) == net.host_count
    assert hosts[0] == net.first_host
    assert hosts[-1] == net.last_host
    assert all(contains(h, net) for h in (hosts[0], hosts[-1]))
    if prefix < 31:
        assert not contains(format_address(net.network_address), net)


@given(value=addresses, prefix=st.integers(min_value=0, max_value=19))
def test_large_blocks_are_refused(value: int, prefix: int):
    text = f"{format_address(value)}/{prefix}"
    assert describe_network(text, prefix_bounds=SNAPSHOT_PREFIX_BOUNDS) is None
