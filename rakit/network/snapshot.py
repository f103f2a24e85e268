"""Controller snapshot shaping.

A snapshot is the raw material of a reconciled view::

    {"users": [...], "online": [...], "networks": [...], "controllerIp": ...}

``users`` are reservation-like records, ``online`` are live records and
``networks`` carry an ``ip_subnet`` CIDR. Offline profiles synthesize the
same shape from locally stored scopes and hosts.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from rakit.utils.logger import get_logger

from .cidr import MAX_HOSTS, SNAPSHOT_PREFIX_BOUNDS, NetworkDescriptor, describe_network
from .store import MODE_LOCAL_OFFLINE, OfflineHostRecord, ProfileRecord, ScopeRecord

logger = get_logger(__name__)

DEFAULT_SNAPSHOT_PREFIX = 24

STATUS_MISSING_PROFILE = "missing-profile"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_LOCAL_OFFLINE = MODE_LOCAL_OFFLINE

WIREGUARD_PURPOSES = ("remote-user-vpn", "remote_user_vpn")


@dataclass(frozen=True)
class ParsedNetwork:
    id: str
    name: str
    ip_subnet: str
    scope_id: int | None
    descriptor: NetworkDescriptor

    def to_dict(self) -> dict[str, Any]:
        d = self.descriptor
        return {
            "id": self.id,
            "name": self.name,
            "ipSubnet": self.ip_subnet,
            "cidr": d.prefix_length,
            "firstHost": d.first_host,
            "lastHost": d.last_host,
            "hostCount": d.host_count,
            "scopeId": self.scope_id,
        }


def parse_networks(
    raw: Iterable[Mapping[str, Any]] | None, *, max_hosts: int | None = MAX_HOSTS
) -> list[ParsedNetwork]:
    """Describe every network with an ``ip_subnet``; unusable ones are skipped.

    A missing or zero prefix is read as /24.
    """
    parsed: list[ParsedNetwork] = []
    for record in raw or ():
        if not isinstance(record, Mapping):
            continue
        subnet = record.get("ip_subnet")
        if not isinstance(subnet, str):
            continue
        descriptor = describe_network(
            subnet,
            max_hosts=max_hosts,
            prefix_bounds=SNAPSHOT_PREFIX_BOUNDS,
            default_prefix=DEFAULT_SNAPSHOT_PREFIX,
        )
        if descriptor is None:
            logger.debug(
                "Skipping network that cannot be enumerated",
                event="rakit.ipdash.snapshot.network_skipped",
                ip_subnet=subnet,
                max_hosts=max_hosts,
            )
            continue
        parsed.append(
            ParsedNetwork(
                id=str(record.get("_id") or subnet),
                name=str(record.get("name") or subnet),
                ip_subnet=subnet,
                scope_id=record.get("scope_id"),
                descriptor=descriptor,
            )
        )
    return parsed


def empty_snapshot(status: str, profile: ProfileRecord | None = None, **extra: Any):
    snapshot: dict[str, Any] = {
        "status": status,
        "profile": profile.to_dict() if profile else None,
        "users": [],
        "online": [],
        "networks": [],
        "offlineScopes": [],
        "controllerIp": None,
    }
    snapshot.update(extra)
    return snapshot


def build_offline_snapshot(
    profile: ProfileRecord,
    scopes: Sequence[ScopeRecord],
    hosts: Sequence[OfflineHostRecord],
) -> dict[str, Any]:
    """Present locally stored scopes and hosts as a controller snapshot."""
    snapshot = empty_snapshot(STATUS_LOCAL_OFFLINE, profile)
    snapshot["networks"] = [
        {
            "_id": f"offline-scope-{scope.id}",
            "name": scope.label or scope.cidr,
            "ip_subnet": scope.cidr,
            "scope_id": scope.id,
        }
        for scope in scopes
    ]
    snapshot["users"] = [
        {
            "_id": f"offline-host-{host.id}",
            "name": host.name or host.hostname or "",
            "hostname": host.hostname or "",
            "mac": host.mac or "",
            "fixed_ip": host.ip,
            "scope_id": host.scope_id,
        }
        for host in hosts
    ]
    snapshot["offlineScopes"] = [scope.to_dict() for scope in scopes]
    return snapshot


# ----------------------------------------------------------------------
# Controller payload normalisation
# ----------------------------------------------------------------------
def extract_device_ip(device: Mapping[str, Any] | None) -> str | None:
    """Management address of a controller-adopted device."""
    if not isinstance(device, Mapping):
        return None
    if device.get("ip"):
        return device["ip"]
    if device.get("primary_ip"):
        return device["primary_ip"]
    config = device.get("config_networks")
    if isinstance(config, Mapping):
        for value in config.values():
            if isinstance(value, Mapping) and (value.get("ip") or value.get("ipaddr")):
                return value.get("ip") or value.get("ipaddr")
    table = device.get("network_table")
    if isinstance(table, list):
        for entry in table:
            if isinstance(entry, Mapping) and entry.get("ip"):
                return entry["ip"]
    return None


def normalize_devices(devices: Iterable[Any] | None) -> list[dict[str, Any]]:
    normalized = []
    for device in devices or ():
        ip = extract_device_ip(device)
        if not ip:
            continue
        normalized.append(
            {
                "mac": device.get("mac") or None,
                "ip": ip,
                "name": device.get("name")
                or device.get("display_name")
                or device.get("model")
                or "Controller device",
                "hostname": device.get("hostname") or device.get("name") or "",
                "last_seen": device.get("last_seen") or None,
            }
        )
    return normalized


def _epoch_seconds(value: Any) -> int | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return None


def normalize_integration_clients(
    clients: Iterable[Any] | None,
) -> list[dict[str, Any]]:
    """Map integration-API clients onto the live-record field names."""
    normalized = []
    for client in clients or ():
        if not isinstance(client, Mapping) or not client.get("ipAddress"):
            continue
        normalized.append(
            {
                "mac": client.get("macAddress") or None,
                "ip": client["ipAddress"],
                "name": client.get("name") or client.get("hostname") or "",
                "hostname": client.get("name") or "",
                "last_seen": _epoch_seconds(client.get("connectedAt")),
                "clientType": client.get("type") or None,
                "_integration": True,
            }
        )
    return normalized


def wireguard_networks(networks: Iterable[Any] | None) -> list[Mapping[str, Any]]:
    """Remote-user VPN networks served by the controller's WireGuard server."""
    found = []
    for network in networks or ():
        if not isinstance(network, Mapping) or not network.get("_id"):
            continue
        vpn_type = network.get("vpn_type") or network.get("vpnType")
        if (
            network.get("purpose") in WIREGUARD_PURPOSES
            and vpn_type == "wireguard-server"
        ):
            found.append(network)
    return found


def merge_wireguard_peers(
    users: Sequence[Mapping[str, Any]] | None,
    peer_entries: Iterable[tuple[Mapping[str, Any], Mapping[str, Any]]],
) -> list[dict[str, Any]]:
    """Append WireGuard peers as fixed-address reservations.

    ``peer_entries`` yields ``(peer, network)`` pairs. Peers whose interface
    address is already reserved (or repeated) are dropped.
    """
    merged = [dict(u) for u in users or () if isinstance(u, Mapping)]
    known = {
        ip
        for u in merged
        if isinstance(ip := (u.get("fixed_ip") or u.get("ip")), str) and ip
    }
    for peer, network in peer_entries:
        ip = peer.get("interface_ip") if isinstance(peer, Mapping) else None
        if not ip or ip in known:
            continue
        known.add(ip)
        label = peer.get("name") or ip
        merged.append(
            {
                "_id": f"wireguard-peer-{peer.get('_id') or ip}",
                "name": label,
                "hostname": label,
                "mac": "",
                "fixed_ip": ip,
                "vpn_network_id": network.get("_id"),
                "vpn_network_name": network.get("name"),
            }
        )
    return merged
