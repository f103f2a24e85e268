"""Prometheus collectors shared across the service.

Collectors are registered once per process; re-importing the module (as test
reloads do) returns the already registered instance.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, Histogram

NAMESPACE = "rakit"


def _existing(name: str):
    return getattr(REGISTRY, "_names_to_collectors", {}).get(f"{NAMESPACE}_{name}")


def counter(
    name: str, documentation: str, labelnames: list[str] | None = None
) -> Counter:
    found = _existing(name)
    if found is not None:
        return found
    return Counter(name, documentation, labelnames or [], namespace=NAMESPACE)


def histogram(name: str, documentation: str, buckets: tuple[float, ...]) -> Histogram:
    found = _existing(name)
    if found is not None:
        return found
    return Histogram(name, documentation, buckets=buckets, namespace=NAMESPACE)


allocations = counter(
    "allocations_total",
    "Device placement attempts by outcome",
    ["outcome"],
)
port_changes = counter(
    "port_changes_total",
    "Ports created or deleted by port-aware transitions",
    ["action"],
)
controller_requests = counter(
    "controller_requests_total",
    "Network controller HTTP requests by outcome",
    ["outcome"],
)
reconcile_seconds = histogram(
    "reconcile_seconds",
    "Time spent building a reconciled network view",
    (0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)
