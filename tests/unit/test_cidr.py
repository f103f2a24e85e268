import pytest

from rakit.network.cidr import (
    SNAPSHOT_PREFIX_BOUNDS,
    contains,
    describe_network,
    enumerate_hosts,
    format_address,
    parse_address,
)


def test_parse_address_accepts_dotted_quad():
    assert parse_address("192.168.1.10") == 0xC0A8010A
    assert parse_address(" 0.0.0.0 ") == 0
    assert parse_address("255.255.255.255") == 0xFFFFFFFF


@pytest.mark.parametrize(
    "text",
    ["256.1.1.1", "1.2.3", "1.2.3.4.5", "a.b.c.d", "1.2.3.-1", "1..2.3", "", None, 42],
)
def test_parse_address_rejects_malformed(text):
    assert parse_address(text) is None


def test_format_address_masks_to_32_bits():
    assert format_address(0xC0A8010A) == "192.168.1.10"
    assert format_address(0x1_0000_0001) == "0.0.0.1"


def test_describe_network_excludes_network_and_broadcast():
    net = describe_network("192.168.68.0/24")
    assert net is not None
    assert net.cidr == "192.168.68.0/24"
    assert net.first_host == "192.168.68.1"
    assert net.last_host == "192.168.68.254"
    assert net.host_count == 254


def test_describe_network_normalizes_host_bits():
    net = describe_network("192.168.1.77/24")
    assert net.cidr == "192.168.1.0/24"


def test_small_networks_use_every_address():
    pair = describe_network("10.0.0.0/31", prefix_bounds=SNAPSHOT_PREFIX_BOUNDS)
    assert (pair.first_host, pair.last_host, pair.host_count) == (
        "10.0.0.0",
        "10.0.0.1",
        2,
    )
    single = describe_network("10.0.0.9/32", prefix_bounds=SNAPSHOT_PREFIX_BOUNDS)
    assert single.first_host == single.last_host == "10.0.0.9"
    assert single.host_count == 1


def test_scope_bounds_reject_tiny_and_whole_space_prefixes():
    assert describe_network("10.0.0.0/31") is None
    assert describe_network("10.0.0.0/0") is None
    slash30 = describe_network("10.0.0.0/30")
    assert slash30.host_count == 2


def test_host_cap_counts_whole_block():
    assert describe_network("10.0.0.0/20").host_count == 4094
    assert describe_network("10.0.0.0/19") is None
    assert describe_network("10.0.0.0/16", max_hosts=None).host_count == 65534


def test_default_prefix_fills_missing_mask():
    net = describe_network(
        "192.168.5.0", prefix_bounds=SNAPSHOT_PREFIX_BOUNDS, default_prefix=24
    )
    assert net.prefix_length == 24
    zero = describe_network(
        "192.168.5.0/0", prefix_bounds=SNAPSHOT_PREFIX_BOUNDS, default_prefix=24
    )
    assert zero.prefix_length == 24
    assert describe_network("192.168.5.0") is None


@pytest.mark.parametrize("text", ["10.0.0.0/abc", "10.0.0/24", "nonsense", None])
def test_describe_network_rejects_garbage(text):
    assert describe_network(text) is None


def test_enumerate_and_contains():
    net = describe_network("192.168.1.0/29")
    assert enumerate_hosts(net) == [f"192.168.1.{i}" for i in range(1, 7)]
    assert contains("192.168.1.6", net)
    assert not contains("192.168.1.7", net)
    assert not contains("192.168.1.0", net)
    assert not contains("garbage", net)
    assert not contains("192.168.1.2", None)
