# pricing_governance/pricing/config.py
"""
Typed pricing configuration snapshots.

A config version stores its pools, exploration block and rails as JSON blobs.
They are decoded and validated here, once, so the simulation engine only ever
sees typed values:
- value units: event mapping + unit economics
- usage pools: value unit reference + included (commit) quantity
- exploration: enabled flag + qualifying event types
- rails: margin floor, monthly spend cap, usage alert thresholds

Loading is tolerant: unparseable blobs fall back to empty defaults and
malformed event mappings load as None. Unit economics keep whatever numeric
value was stored (or None) so the pool pricer can flag them as blocking issues.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PricingMode(str, Enum):
    USE_UNIT_ECONOMICS = "use_unit_economics"
    REVENUE_PROXY_TOTAL = "revenue_proxy_total"
    REVENUE_PROXY_COMMIT = "revenue_proxy_commit"


class CommitSemantics(str, Enum):
    COMMIT_FLOOR = "commit_floor"
    ENTITLEMENT_ONLY = "entitlement_only"


PRICING_MODES = tuple(m.value for m in PricingMode)
COMMIT_SEMANTICS = tuple(s.value for s in CommitSemantics)


def parse_json_blob(value: Any, fallback: Any) -> Any:
    """
    Decode a stored JSON blob. Already-decoded values pass through;
    None, blank strings and invalid JSON return the fallback.
    """
    if value is None:
        return fallback
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return fallback
        try:
            return json.loads(text)
        except ValueError:
            return fallback
    return value


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _optional_number(v: Any) -> Optional[float]:
    return float(v) if _is_number(v) else None


def _coerce_quantity(v: Any) -> float:
    # Stored quantities may be strings; anything unparseable counts as 0.
    if _is_number(v):
        x = float(v)
    elif isinstance(v, str):
        try:
            x = float(v.strip()) if v.strip() else 0.0
        except ValueError:
            x = 0.0
    else:
        x = 0.0
    return x if math.isfinite(x) else 0.0


@dataclass(frozen=True)
class Aggregation:
    type: str  # "count" | "sum"
    field: Optional[str] = None


@dataclass(frozen=True)
class EventMapping:
    event_type: str
    aggregation: Aggregation
    filters: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["EventMapping"]:
        data = parse_json_blob(raw, None)
        if not isinstance(data, dict):
            return None
        agg = data.get("aggregation")
        if not data.get("event_type") or not isinstance(agg, dict) or not agg.get("type"):
            return None
        filters = data.get("filters")
        return cls(
            event_type=str(data["event_type"]),
            aggregation=Aggregation(type=str(agg["type"]), field=agg.get("field") or None),
            filters=dict(filters) if isinstance(filters, dict) else {},
        )


@dataclass(frozen=True)
class UnitEconomics:
    avg_cost_per_unit_usd: Optional[float] = None
    target_price_per_unit_usd: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "UnitEconomics":
        data = parse_json_blob(raw, {})
        if not isinstance(data, dict):
            data = {}
        return cls(
            avg_cost_per_unit_usd=_optional_number(data.get("avg_cost_per_unit_usd")),
            target_price_per_unit_usd=_optional_number(data.get("target_price_per_unit_usd")),
        )


@dataclass(frozen=True)
class ValueUnitDefinition:
    value_unit_id: str
    event_mapping: Optional[EventMapping]
    unit_economics: UnitEconomics
    name: str = ""
    unit_type: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ValueUnitDefinition":
        return cls(
            value_unit_id=str(raw["value_unit_id"]),
            name=str(raw.get("name") or ""),
            unit_type=raw.get("unit_type"),
            event_mapping=EventMapping.from_dict(raw.get("event_mapping")),
            unit_economics=UnitEconomics.from_dict(raw.get("unit_economics")),
        )


@dataclass(frozen=True)
class UsagePool:
    pool_id: str
    value_unit_id: str
    included_quantity: float = 0.0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UsagePool":
        return cls(
            pool_id=str(raw.get("pool_id") or ""),
            value_unit_id=str(raw.get("value_unit_id") or ""),
            included_quantity=_coerce_quantity(raw.get("included_quantity")),
        )


@dataclass(frozen=True)
class ExplorationConfig:
    enabled: bool = False
    qualifying_events: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> "ExplorationConfig":
        data = parse_json_blob(raw, {})
        if not isinstance(data, dict):
            return cls()
        events = data.get("qualifying_events") or []
        return cls(
            enabled=bool(data.get("enabled", False)),
            qualifying_events=tuple(str(e) for e in events) if isinstance(events, list) else (),
        )


@dataclass(frozen=True)
class UsageThreshold:
    percent: float
    action: Optional[str] = None


@dataclass(frozen=True)
class RailsConfig:
    margin_floor: Optional[float] = None
    monthly_spend_cap_usd: Optional[float] = None
    usage_thresholds: Tuple[UsageThreshold, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> "RailsConfig":
        data = parse_json_blob(raw, {})
        if not isinstance(data, dict):
            return cls()
        thresholds = data.get("usage_thresholds")
        parsed: List[UsageThreshold] = []
        if isinstance(thresholds, list):
            for t in thresholds:
                if isinstance(t, dict) and _is_number(t.get("percent")):
                    parsed.append(UsageThreshold(percent=float(t["percent"]), action=t.get("action")))
        return cls(
            margin_floor=_optional_number(data.get("margin_floor")),
            monthly_spend_cap_usd=_optional_number(data.get("monthly_spend_cap_usd")),
            usage_thresholds=tuple(parsed),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "margin_floor": self.margin_floor,
            "monthly_spend_cap_usd": self.monthly_spend_cap_usd,
            "usage_thresholds": [{"percent": t.percent, "action": t.action} for t in self.usage_thresholds],
        }


@dataclass(frozen=True)
class ConfigurationSnapshot:
    pools: Tuple[UsagePool, ...] = ()
    exploration: ExplorationConfig = field(default_factory=ExplorationConfig)
    rails: RailsConfig = field(default_factory=RailsConfig)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConfigurationSnapshot":
        pools = parse_json_blob(raw.get("pools"), [])
        if not isinstance(pools, list):
            pools = []
        return cls(
            pools=tuple(UsagePool.from_dict(p) for p in pools if isinstance(p, dict)),
            exploration=ExplorationConfig.from_dict(raw.get("exploration")),
            rails=RailsConfig.from_dict(raw.get("rails")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pools": [
                {"pool_id": p.pool_id, "value_unit_id": p.value_unit_id, "included_quantity": p.included_quantity}
                for p in self.pools
            ],
            "exploration": {
                "enabled": self.exploration.enabled,
                "qualifying_events": list(self.exploration.qualifying_events),
            },
            "rails": self.rails.to_dict(),
        }


@dataclass(frozen=True)
class PricingCycle:
    cycle_id: str
    cycle_type: str
    period_length_days: int

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PricingCycle":
        return cls(
            cycle_id=str(raw["cycle_id"]),
            cycle_type=str(raw.get("cycle_type") or ""),
            period_length_days=int(raw.get("period_length_days") or 0),
        )


@dataclass(frozen=True)
class ConfigVersion:
    """A stored config version: subject resolution + lifecycle + snapshot."""
    config_version_id: str
    cycle_id: str
    workspace_id: Optional[str]
    segment: Optional[str]
    stage: Optional[str]
    target_environment: Optional[str]
    snapshot: ConfigurationSnapshot
    status: str = "draft"
    version: int = 1
    price_book_ref: Optional[str] = None
    value_unit_snapshot_version: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConfigVersion":
        return cls(
            config_version_id=str(raw["config_version_id"]),
            cycle_id=str(raw.get("cycle_id") or ""),
            workspace_id=raw.get("workspace_id"),
            segment=raw.get("segment"),
            stage=raw.get("stage"),
            target_environment=raw.get("target_environment"),
            snapshot=ConfigurationSnapshot.from_dict(raw),
            status=str(raw.get("status") or "draft"),
            version=int(raw.get("version") or 1),
            price_book_ref=raw.get("price_book_ref"),
            value_unit_snapshot_version=raw.get("value_unit_snapshot_version"),
            created_at=raw.get("created_at"),
        )

    def subject_resolution(self) -> Dict[str, Optional[str]]:
        return {
            "workspace_id": self.workspace_id,
            "segment": self.segment,
            "stage": self.stage,
            "target_environment": self.target_environment,
        }
