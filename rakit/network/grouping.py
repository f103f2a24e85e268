"""Bucket host entries into fixed-width last-octet ranges for display."""

from __future__ import annotations

import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rakit.exceptions import ValidationError

from .reconcile import HostEntry

UNGROUPED_KEY = "all"
OTHER_KEY = "other"


@dataclass
class HostGroup:
    key: str
    label: str | None
    tag_key: str
    start: int
    hosts: list[HostEntry] = field(default_factory=list)
    display_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "tagKey": self.tag_key,
            "displayLabel": self.display_label,
            "hosts": [h.to_dict() for h in self.hosts],
        }


def parse_group_size(value: Any) -> int | None:
    """``None`` for no grouping, else the positive bucket width."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().lower()
    if text in ("", "none", "0"):
        return None
    if not text.isdigit():
        raise ValidationError("Invalid group size", field="groupBy", value=value)
    return int(text)


def group_label_for_ip(ip: str, size: int) -> tuple[int, int] | None:
    """Bucket ``(start, end)`` of ``ip`` by its last octet, clamped to 1..254."""
    last = ip.rsplit(".", 1)[-1].strip()
    if not last.isdigit():
        return None
    bucket = int(last) // size
    start = 1 if bucket == 0 else bucket * size
    end = min(start + size - 1, 254)
    return max(start, 1), end


def group_hosts(
    hosts: Sequence[HostEntry],
    group_by: Any = None,
    tags: Mapping[str, str] | None = None,
) -> list[HostGroup]:
    """Partition ``hosts`` into ordered buckets without reordering inside them.

    ``tags`` maps a bucket's ``tag_key`` (``"{size}:{start}-{end}"``) to a
    custom display label. Tag keys include the width so labels chosen for one
    grouping width are not shown for another.
    """
    tags = tags or {}
    size = parse_group_size(group_by)
    if size is None:
        return [
            HostGroup(
                key=UNGROUPED_KEY,
                label=None,
                tag_key=UNGROUPED_KEY,
                start=0,
                hosts=list(hosts),
            )
        ]

    groups: dict[str, HostGroup] = {}
    for entry in hosts:
        bounds = group_label_for_ip(entry.ip, size)
        if bounds is None:
            key, start, tag_key = OTHER_KEY, sys.maxsize, OTHER_KEY
        else:
            start, end = bounds
            key = f"{start}-{end}"
            tag_key = f"{size}:{key}"
        group = groups.get(key)
        if group is None:
            group = groups[key] = HostGroup(
                key=key,
                label=key,
                tag_key=tag_key,
                start=start,
                display_label=tags.get(tag_key) or key,
            )
        group.hosts.append(entry)
    return sorted(groups.values(), key=lambda g: (g.start, g.key))
