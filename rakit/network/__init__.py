"""IP Dash: controller snapshots reconciled into per-address network views."""

from .reconcile import AddressReconciler, HostEntry, VisibilityFilters
from .service import IpDashService
from .store import IpDashStore, OfflineHostRecord, ProfileRecord, ScopeRecord

__all__ = [
    "AddressReconciler",
    "HostEntry",
    "VisibilityFilters",
    "IpDashService",
    "IpDashStore",
    "ProfileRecord",
    "ScopeRecord",
    "OfflineHostRecord",
]
