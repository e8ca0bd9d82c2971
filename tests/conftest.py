"""
Shared fixtures for the pricing governance tests.

Builders return raw dicts shaped like stored rows so tests exercise the same
loading path as the service; `snapshot` / `value_unit` wrap them into typed objects.
"""

from typing import Any, Dict, List, Optional

import pytest

from pricing_governance.pricing.config import ConfigurationSnapshot, ValueUnitDefinition


def make_value_unit(
    value_unit_id: str = "vu_render",
    event_type: str = "render_completed",
    aggregation: Optional[Dict[str, Any]] = None,
    filters: Optional[Dict[str, Any]] = None,
    cost: Any = 1.0,
    price: Any = 2.0,
) -> Dict[str, Any]:
    mapping: Dict[str, Any] = {"event_type": event_type, "aggregation": aggregation or {"type": "count"}}
    if filters is not None:
        mapping["filters"] = filters
    return {
        "value_unit_id": value_unit_id,
        "name": value_unit_id,
        "event_mapping": mapping,
        "unit_economics": {"avg_cost_per_unit_usd": cost, "target_price_per_unit_usd": price},
    }


def make_config(
    config_version_id: str = "cfg_candidate",
    pools: Optional[List[Dict[str, Any]]] = None,
    exploration: Optional[Dict[str, Any]] = None,
    rails: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    row = {
        "config_version_id": config_version_id,
        "cycle_id": "cyc_1",
        "workspace_id": "ws_1",
        "segment": "smb",
        "stage": "learning",
        "target_environment": "sandbox",
        "pools": pools if pools is not None else [
            {"pool_id": "pool_main", "value_unit_id": "vu_render", "included_quantity": 100}
        ],
        "exploration": exploration or {"enabled": False},
        "rails": rails or {},
    }
    row.update(extra)
    return row


def make_events(n: int, event_type: str = "render_completed", **fields: Any) -> List[Dict[str, Any]]:
    base = {"event_type": event_type, "workspace_id": "ws_1", "segment": "smb"}
    base.update(fields)
    return [dict(base) for _ in range(n)]


def value_unit(**kwargs: Any) -> ValueUnitDefinition:
    return ValueUnitDefinition.from_dict(make_value_unit(**kwargs))


def snapshot(**kwargs: Any) -> ConfigurationSnapshot:
    return ConfigurationSnapshot.from_dict(make_config(**kwargs))


@pytest.fixture
def render_events() -> List[Dict[str, Any]]:
    """150 render events in ws_1/smb."""
    return make_events(150)


@pytest.fixture
def render_value_units() -> List[ValueUnitDefinition]:
    return [value_unit()]


@pytest.fixture
def simulation_payload(render_events) -> Dict[str, Any]:
    return {
        "candidate": make_config(),
        "candidate_value_units": [make_value_unit()],
        "historical_window_days": 30,
        "filters": {"workspace_id": "ws_1", "segment": "smb", "stage": "learning"},
        "pricing_mode": "use_unit_economics",
        "events": render_events,
    }
