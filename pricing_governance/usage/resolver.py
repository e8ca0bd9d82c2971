# pricing_governance/usage/resolver.py
"""
Usage resolver: value unit event mapping -> metered quantity.

- count: number of events matching event_type + filters
- sum  : sum of a numeric field over matching events (non-numeric -> 0)

Malformed mappings resolve to 0. The event feed is never mutated.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from pricing_governance.pricing.config import EventMapping


def filter_events(
    events: Iterable[Mapping[str, Any]],
    *,
    workspace_id: Optional[str] = None,
    segment: Optional[str] = None,
) -> List[Mapping[str, Any]]:
    """Run-level scope: keep events for the requested workspace/segment (empty = any)."""
    out = []
    for e in events:
        if workspace_id and e.get("workspace_id") != workspace_id:
            continue
        if segment and e.get("segment") != segment:
            continue
        out.append(e)
    return out


def matches_filters(event: Mapping[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (filters or {}).items():
        if expected is None:
            continue
        if event.get(key) != expected:
            return False
    return True


def _numeric_value(v: Any) -> float:
    if isinstance(v, bool):
        return 0.0
    if isinstance(v, (int, float)):
        x = float(v)
    elif isinstance(v, str):
        text = v.strip()
        if not text:
            return 0.0
        try:
            x = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return x if math.isfinite(x) else 0.0


def matching_events(mapping: EventMapping, events: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    return [
        e for e in events
        if e.get("event_type") == mapping.event_type and matches_filters(e, mapping.filters)
    ]


def resolve_quantity(mapping: Optional[EventMapping], events: Sequence[Mapping[str, Any]]) -> float:
    if mapping is None or not mapping.event_type or not mapping.aggregation.type:
        return 0.0

    matched = matching_events(mapping, events)
    agg = mapping.aggregation

    if agg.type == "count":
        return float(len(matched))

    if agg.type == "sum":
        if not agg.field:
            return 0.0
        values = np.array([_numeric_value(e.get(agg.field)) for e in matched], dtype=float)
        return float(values.sum()) if values.size else 0.0

    return 0.0
