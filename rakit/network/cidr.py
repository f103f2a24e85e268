"""Integer arithmetic over dotted-quad IPv4 addresses and CIDR blocks."""

from __future__ import annotations

from dataclasses import dataclass

MAX_HOSTS = 4096

# Scope creation and snapshot parsing accept different prefix ranges.
SCOPE_PREFIX_BOUNDS = (1, 30)
SNAPSHOT_PREFIX_BOUNDS = (0, 32)

_U32 = 0xFFFFFFFF


@dataclass(frozen=True)
class NetworkDescriptor:
    """Usable host range of a CIDR block, as 32-bit integers."""

    network_address: int
    prefix_length: int
    first_host_int: int
    last_host_int: int
    host_count: int

    @property
    def cidr(self) -> str:
        return f"{format_address(self.network_address)}/{self.prefix_length}"

    @property
    def first_host(self) -> str:
        return format_address(self.first_host_int)

    @property
    def last_host(self) -> str:
        return format_address(self.last_host_int)


def parse_address(text: object) -> int | None:
    """Parse ``a.b.c.d`` into an unsigned 32-bit int, or ``None`` if malformed."""
    if not isinstance(text, str):
        return None
    parts = text.strip().split(".")
    if len(parts) != 4:
        return None
    value = 0
    for part in parts:
        if not part.isdigit() or not part.isascii():
            return None
        octet = int(part)
        if octet > 255:
            return None
        value = (value << 8) | octet
    return value


def format_address(value: int) -> str:
    value &= _U32
    return ".".join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def describe_network(
    cidr_text: object,
    *,
    max_hosts: int | None = MAX_HOSTS,
    prefix_bounds: tuple[int, int] = SCOPE_PREFIX_BOUNDS,
    default_prefix: int | None = None,
) -> NetworkDescriptor | None:
    """Compute the usable host range of ``cidr_text``.

    Returns ``None`` when the text is malformed, the prefix falls outside
    ``prefix_bounds``, or the block holds more than ``max_hosts`` addresses
    (``None`` disables the cap). /31 and /32 treat every address as usable;
    larger blocks exclude the network and broadcast addresses.

    ``default_prefix`` replaces a missing or zero prefix, matching how
    controller snapshots omit the mask on some networks.
    """
    if not isinstance(cidr_text, str):
        return None
    address_part, sep, prefix_part = cidr_text.strip().partition("/")
    prefix_part = prefix_part.strip()
    if default_prefix is not None and (not sep or prefix_part in ("", "0")):
        prefix = default_prefix
    else:
        if not prefix_part.isdigit():
            return None
        prefix = int(prefix_part)

    low, high = prefix_bounds
    if not (low <= prefix <= high):
        return None
    address = parse_address(address_part)
    if address is None:
        return None

    mask = 0 if prefix == 0 else (_U32 << (32 - prefix)) & _U32
    base = address & mask
    total = 1 << (32 - prefix)
    if max_hosts is not None and total > max_hosts:
        return None
    if total <= 2:
        first, last = base, base + total - 1
    else:
        first, last = base + 1, base + total - 2
    return NetworkDescriptor(
        network_address=base,
        prefix_length=prefix,
        first_host_int=first,
        last_host_int=last,
        host_count=max(0, last - first + 1),
    )


def enumerate_hosts(descriptor: NetworkDescriptor) -> list[str]:
    """Every usable address from first to last host, inclusive."""
    return [
        format_address(value)
        for value in range(descriptor.first_host_int, descriptor.last_host_int + 1)
    ]


def contains(address_text: object, descriptor: NetworkDescriptor | None) -> bool:
    value = parse_address(address_text)
    if value is None or descriptor is None:
        return False
    return descriptor.first_host_int <= value <= descriptor.last_host_int
