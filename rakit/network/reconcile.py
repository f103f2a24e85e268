"""Reconcile reservations, live telemetry and the controller host per address.

Reservations are the base layer: live records only fill gaps in an existing
entry or add addresses nobody reserved. The resulting address index is then
walked over a network's usable range to produce one :class:`HostEntry` per
visible address.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .cidr import NetworkDescriptor, contains, enumerate_hosts

Record = dict[str, Any]
Accessor = Callable[[Mapping[str, Any]], Any]

ONLINE_WINDOW_SECONDS = 600

_OFFLINE_HOST_ID = re.compile(r"^offline-host-(\d+)$", re.IGNORECASE)


# ----------------------------------------------------------------------
# Candidate address accessors
# ----------------------------------------------------------------------
def _field(name: str) -> Accessor:
    def get(record: Mapping[str, Any]) -> Any:
        return record.get(name)

    get.__name__ = name
    return get


def _list_entries(name: str) -> Accessor:
    """First ``ip`` found in a list of ``{ip: ...}`` mappings under ``name``."""

    def get(record: Mapping[str, Any]) -> Any:
        entries = record.get(name)
        if not isinstance(entries, list):
            return None
        for entry in entries:
            if isinstance(entry, Mapping) and _clean(entry.get("ip")):
                return entry.get("ip")
        return None

    get.__name__ = f"{name}[].ip"
    return get


def _config_networks(record: Mapping[str, Any]) -> Any:
    """First ``ip`` (else ``ipaddr``) found across ``config_networks`` values."""
    config = record.get("config_networks")
    if not isinstance(config, Mapping):
        return None
    for value in config.values():
        if not isinstance(value, Mapping):
            continue
        candidate = _clean(value.get("ip")) or _clean(value.get("ipaddr"))
        if candidate:
            return candidate
    return None


def _uplink_remote_ip(record: Mapping[str, Any]) -> Any:
    uplink = record.get("uplink")
    return uplink.get("remote_ip") if isinstance(uplink, Mapping) else None


RESERVATION_IP_ACCESSORS: tuple[Accessor, ...] = (
    _field("fixed_ip"),
    _field("ip"),
    _field("last_ip"),
    _field("last_known_ip"),
    _field("noted_ip"),
    _field("primary_ip"),
    _field("ipv4"),
    _field("remote_ip"),
    _field("tunnel_ip"),
    _list_entries("network_table"),
    _config_networks,
)

LIVE_IP_ACCESSORS: tuple[Accessor, ...] = (
    _field("ip"),
    _field("ipv4"),
    _field("tunnel_ip"),
    _field("remote_ip"),
    _field("last_ip"),
    _field("last_known_ip"),
    _field("noted_ip"),
    _field("primary_ip"),
    _uplink_remote_ip,
    _list_entries("networks"),
    _config_networks,
)


def _clean(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return None


def first_present(
    record: Mapping[str, Any] | None, accessors: Sequence[Accessor]
) -> str | None:
    """Evaluate ``accessors`` in order and return the first non-empty address."""
    if not isinstance(record, Mapping):
        return None
    for accessor in accessors:
        value = _clean(accessor(record))
        if value:
            return value
    return None


def offline_host_id(record: Mapping[str, Any] | None) -> int | None:
    """Numeric id of a locally stored host, recovered from its snapshot ``_id``."""
    if not record:
        return None
    match = _OFFLINE_HOST_ID.match(str(record.get("_id") or ""))
    return int(match.group(1)) if match else None


# ----------------------------------------------------------------------
# Result shapes
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class VisibilityFilters:
    """Independent, AND-combined exclusions applied per address."""

    show_online: bool = False
    show_reserved: bool = False
    hide_empty: bool = False


@dataclass(frozen=True)
class HostEntry:
    ip: str
    device: Record | None = None
    host_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"ip": self.ip, "device": self.device, "hostId": self.host_id}


@dataclass(frozen=True)
class NetworkSummary:
    reservations: int
    online: int
    used: int
    usable: int
    usage_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "reservations": self.reservations,
            "online": self.online,
            "used": self.used,
            "usable": self.usable,
            "usagePercent": self.usage_percent,
        }


# ----------------------------------------------------------------------
# Reconciler
# ----------------------------------------------------------------------
class AddressReconciler:
    """Merge identity sources into a per-address index and filter it.

    ``clock`` returns the current time in epoch seconds; tests pin it.
    """

    def __init__(
        self,
        *,
        online_window_seconds: int = ONLINE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.online_window_seconds = online_window_seconds
        self._clock = clock

    def index_by_address(
        self, reservations: Iterable[Mapping[str, Any]]
    ) -> dict[str, Record]:
        """Key each reservation by its first candidate address.

        When two reservations resolve to the same address the earlier one
        keeps it. Stored records are copies carrying the resolved ``ip``.
        """
        index: dict[str, Record] = {}
        for reservation in reservations or ():
            ip = first_present(reservation, RESERVATION_IP_ACCESSORS)
            if ip is None or ip in index:
                continue
            index[ip] = {**reservation, "ip": ip}
        return index

    def merge_live(
        self, index: dict[str, Record], live_records: Iterable[Mapping[str, Any]]
    ) -> dict[str, Record]:
        """Fold live telemetry into ``index`` in place and return it."""
        for live in live_records or ():
            ip = first_present(live, LIVE_IP_ACCESSORS)
            if ip is None:
                continue
            existing = index.get(ip)
            if existing is None:
                index[ip] = {
                    "name": live.get("name") or live.get("hostname") or "",
                    "hostname": live.get("hostname") or "",
                    "mac": live.get("mac") or "",
                    "last_seen": live.get("last_seen"),
                    "ip": ip,
                }
                continue
            if not existing.get("mac") and live.get("mac"):
                existing["mac"] = live["mac"]
            if not existing.get("hostname") and live.get("hostname"):
                existing["hostname"] = live["hostname"]
            if not existing.get("name") and (live.get("name") or live.get("hostname")):
                existing["name"] = live.get("name") or live.get("hostname")
            if live.get("last_seen"):
                existing["last_seen"] = live["last_seen"]
        return index

    def add_controller_host(
        self,
        index: dict[str, Record],
        controller_ip: str | None,
        *,
        name: str | None = None,
        host: str | None = None,
    ) -> dict[str, Record]:
        """Show the controller itself unless something already claims its address."""
        if controller_ip and controller_ip not in index:
            index[controller_ip] = {
                "_id": "controller-host",
                "name": f"{name} controller" if name else "Controller host",
                "hostname": host or "Controller host",
                "ip": controller_ip,
                "fixed_ip": controller_ip,
                "last_seen": int(self._clock()),
            }
        return index

    @staticmethod
    def build_online_mac_set(live_records: Iterable[Mapping[str, Any]]) -> set[str]:
        return {
            str(live["mac"]).lower()
            for live in live_records or ()
            if isinstance(live, Mapping) and live.get("mac")
        }

    def is_online(
        self, record: Mapping[str, Any] | None, online_macs: set[str]
    ) -> bool:
        if not record:
            return False
        mac = record.get("mac")
        if mac and str(mac).lower() in online_macs:
            return True
        last_seen = record.get("last_seen")
        if not last_seen:
            return False
        try:
            seen = float(last_seen)
        except (TypeError, ValueError):
            return False
        return self._clock() - seen < self.online_window_seconds

    def resolve_visibility(
        self,
        record: Mapping[str, Any] | None,
        filters: VisibilityFilters,
        online_macs: set[str],
    ) -> bool:
        if record is None:
            return not filters.hide_empty
        if filters.show_online and not self.is_online(record, online_macs):
            return False
        if filters.show_reserved and not record.get("fixed_ip"):
            return False
        return True

    def get_visible_hosts(
        self,
        network: NetworkDescriptor,
        index: Mapping[str, Record],
        filters: VisibilityFilters,
        online_macs: set[str],
        offline_mode: bool = False,
    ) -> list[HostEntry]:
        """Ordered entries for every usable address that passes ``filters``.

        Without live telemetry (``offline_mode``) the online filter is ignored.
        """
        if offline_mode and filters.show_online:
            filters = VisibilityFilters(
                show_online=False,
                show_reserved=filters.show_reserved,
                hide_empty=filters.hide_empty,
            )
        hosts: list[HostEntry] = []
        for ip in enumerate_hosts(network):
            record = index.get(ip)
            if self.resolve_visibility(record, filters, online_macs):
                hosts.append(
                    HostEntry(ip=ip, device=record, host_id=offline_host_id(record))
                )
        return hosts

    def summarize(
        self,
        network: NetworkDescriptor,
        index: Mapping[str, Record],
        reservations: Iterable[Mapping[str, Any]],
        online_macs: set[str],
    ) -> NetworkSummary:
        in_network = [
            r
            for r in reservations or ()
            if r.get("fixed_ip") and contains(r.get("fixed_ip"), network)
        ]
        online = sum(1 for r in in_network if self.is_online(r, online_macs))
        used = sum(1 for ip in index if contains(ip, network))
        usable = network.host_count
        percent = round(used / usable * 100, 1) if usable > 0 else 0.0
        return NetworkSummary(
            reservations=len(in_network),
            online=online,
            used=used,
            usable=usable,
            usage_percent=percent,
        )
