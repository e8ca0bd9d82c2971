# pricing_governance/simulation/service.py
"""
End-to-end simulation service.

Single source of truth:
- raw request dict -> validated parameters + typed config snapshots
- usage event feed (cached in-process) -> engine -> run record

The run record is what the surrounding system persists verbatim:
  simulation_run_id, candidate/baseline ids, resolved input, output, completeness_result
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pricing_governance.pricing.config import (
    COMMIT_SEMANTICS,
    PRICING_MODES,
    CommitSemantics,
    ConfigVersion,
    PricingMode,
    ValueUnitDefinition,
)
from pricing_governance.simulation.engine import SimulationFilters, SimulationParameters, run_simulation
from pricing_governance.simulation.projections import DEFAULT_CHURN_HORIZON_MONTHS
from pricing_governance.simulation.risk import classify_completeness
from pricing_governance.usage.store import UsageEvent, ensure_events_downloaded, load_usage_events
from pricing_governance.utils.config import get_usage_feed_config

logger = logging.getLogger(__name__)

MAX_CHURN_HORIZON_MONTHS = 120


class SimulationRequestError(ValueError):
    """Caller input rejected before the engine runs."""


# In-process cache (useful for FastAPI startup + AWS Lambda warm invocations)
_CACHED_EVENTS: Optional[List[UsageEvent]] = None
_CACHED_EVENTS_PATH: Optional[Path] = None


def get_usage_events(path: Optional[str] = None, force_reload: bool = False) -> List[UsageEvent]:
    """
    Load and cache the historical usage event feed.
    Without an explicit path, USAGE_EVENTS_PATH is used, downloading from
    USAGE_EVENTS_S3_URI first when configured and the file is missing.
    A different path than the cached one triggers a reload.
    """
    global _CACHED_EVENTS, _CACHED_EVENTS_PATH
    cfg = None if path else get_usage_feed_config()
    resolved = Path(path) if path else cfg.local_path

    if force_reload or _CACHED_EVENTS is None or resolved != _CACHED_EVENTS_PATH:
        if cfg is not None and cfg.s3_enabled and not resolved.exists():
            ensure_events_downloaded(s3_uri=cfg.s3_uri or "", local_path=resolved, aws_region=cfg.aws_region)
        _CACHED_EVENTS = load_usage_events(resolved)
        _CACHED_EVENTS_PATH = resolved
    return _CACHED_EVENTS


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _validate_overrides(raw: Any, name: str, valid: Sequence[str], label: str) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SimulationRequestError(
            f"{name} must be an object with pool_id keys and {label} values"
        )
    for pool_id, value in raw.items():
        if value not in valid:
            raise SimulationRequestError(
                f'Invalid {label} "{value}" for pool "{pool_id}". Must be one of: {", ".join(valid)}'
            )
    return {str(k): str(v) for k, v in raw.items()}


def resolve_segment_customer_count(
    override: Any,
    segment: Optional[str],
    customers: Optional[Sequence[Mapping[str, Any]]] = None,
) -> float:
    """Request override wins; otherwise count customers in the segment. Floors at 1."""
    if override is not None:
        if not _is_number(override):
            raise SimulationRequestError("segment_customer_count must be a number")
        return max(1, override)
    count = sum(1 for c in (customers or []) if c.get("segment_id") == segment)
    return count if count > 0 else 1


@dataclass(frozen=True)
class SimulationRequest:
    candidate: ConfigVersion
    candidate_value_units: List[ValueUnitDefinition]
    baseline: Optional[ConfigVersion]
    baseline_value_units: Optional[List[ValueUnitDefinition]]
    params: SimulationParameters


def parse_simulation_request(payload: Mapping[str, Any]) -> SimulationRequest:
    if not isinstance(payload, Mapping):
        raise SimulationRequestError("Invalid JSON body. Send application/json.")

    candidate_raw = payload.get("candidate")
    window = payload.get("historical_window_days")
    filters_raw = payload.get("filters")
    if not candidate_raw or not window or filters_raw is None:
        raise SimulationRequestError(
            "Missing required fields: candidate, historical_window_days, filters"
        )
    if not _is_number(window) or window <= 0:
        raise SimulationRequestError("historical_window_days must be a positive number")
    if not isinstance(filters_raw, dict):
        raise SimulationRequestError("filters must be an object")

    pricing_mode = payload.get("pricing_mode") or PricingMode.USE_UNIT_ECONOMICS.value
    if pricing_mode not in PRICING_MODES:
        raise SimulationRequestError(f"Invalid pricing_mode. Must be one of: {', '.join(PRICING_MODES)}")
    commit_semantics = payload.get("commit_semantics") or CommitSemantics.COMMIT_FLOOR.value
    if commit_semantics not in COMMIT_SEMANTICS:
        raise SimulationRequestError(
            f"Invalid commit_semantics. Must be one of: {', '.join(COMMIT_SEMANTICS)}"
        )

    mode_overrides = _validate_overrides(
        payload.get("pool_pricing_mode_overrides"), "pool_pricing_mode_overrides", PRICING_MODES, "pricing_mode"
    )
    semantics_overrides = _validate_overrides(
        payload.get("pool_commit_semantics_overrides"),
        "pool_commit_semantics_overrides",
        COMMIT_SEMANTICS,
        "commit_semantics",
    )

    annual_churn_rate = payload.get("annual_churn_rate")
    if annual_churn_rate is not None and (not _is_number(annual_churn_rate) or not 0 <= annual_churn_rate <= 1):
        raise SimulationRequestError("annual_churn_rate must be a number between 0 and 1")

    horizon = payload.get("churn_horizon_months")
    if horizon is None:
        horizon = DEFAULT_CHURN_HORIZON_MONTHS
    if not _is_number(horizon) or int(horizon) != horizon or not 1 <= horizon <= MAX_CHURN_HORIZON_MONTHS:
        raise SimulationRequestError(
            f"churn_horizon_months must be an integer between 1 and {MAX_CHURN_HORIZON_MONTHS}"
        )

    filters = SimulationFilters(
        workspace_id=filters_raw.get("workspace_id") or None,
        segment=filters_raw.get("segment") or None,
        stage=filters_raw.get("stage") or None,
        target_environment=filters_raw.get("target_environment") or None,
    )

    try:
        candidate = ConfigVersion.from_dict(candidate_raw)
        candidate_vus = [ValueUnitDefinition.from_dict(v) for v in payload.get("candidate_value_units") or []]

        baseline_raw = payload.get("baseline")
        if payload.get("baseline_config_version_id") == "none":
            baseline_raw = None
        baseline = ConfigVersion.from_dict(baseline_raw) if baseline_raw else None
        baseline_vus_raw = payload.get("baseline_value_units")
        baseline_vus = (
            [ValueUnitDefinition.from_dict(v) for v in baseline_vus_raw] if baseline_vus_raw is not None else None
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SimulationRequestError(f"Invalid config payload: {e}") from e

    include_exploration = payload.get("include_exploration_in_results")
    params = SimulationParameters(
        historical_window_days=window,
        filters=filters,
        pricing_mode=PricingMode(pricing_mode),
        include_exploration_in_results=True if include_exploration is None else bool(include_exploration),
        segment_customer_count=resolve_segment_customer_count(
            payload.get("segment_customer_count"), filters.segment, payload.get("customers")
        ),
        annual_churn_rate=annual_churn_rate,
        churn_horizon_months=int(horizon),
        pool_pricing_mode_overrides={k: PricingMode(v) for k, v in mode_overrides.items()},
        commit_semantics=CommitSemantics(commit_semantics),
        pool_commit_semantics_overrides={k: CommitSemantics(v) for k, v in semantics_overrides.items()},
    )

    return SimulationRequest(
        candidate=candidate,
        candidate_value_units=candidate_vus,
        baseline=baseline,
        baseline_value_units=baseline_vus,
        params=params,
    )


def _run_input(params: SimulationParameters, assumptions: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "historical_window_days": params.historical_window_days,
        "filters": params.filters.to_dict(),
        "pricing_mode": params.pricing_mode.value,
        "include_exploration_in_results": params.include_exploration_in_results,
        "segment_customer_count": params.segment_customer_count,
        "annual_churn_rate": assumptions.get("annual_churn_rate"),
        "monthly_churn_rate": assumptions.get("monthly_churn_rate"),
        "churn_horizon_months": assumptions.get("churn_horizon_months", DEFAULT_CHURN_HORIZON_MONTHS),
        "pool_pricing_mode_overrides": {k: v.value for k, v in params.pool_pricing_mode_overrides.items()} or None,
        "commit_semantics": params.commit_semantics.value,
        "pool_commit_semantics_overrides": {
            k: v.value for k, v in params.pool_commit_semantics_overrides.items()
        } or None,
    }


def simulate_from_request(
    payload: Mapping[str, Any],
    *,
    events: Optional[Sequence[UsageEvent]] = None,
    events_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Full simulation run:
      raw request -> parameters -> engine -> run record (JSON-ready dict)

    Events: explicit argument > inline payload["events"] > cached feed.
    """
    req = parse_simulation_request(payload)

    if events is None:
        inline = payload.get("events")
        events = inline if isinstance(inline, list) else get_usage_events(path=events_path)

    output = run_simulation(
        req.candidate.snapshot,
        req.candidate_value_units,
        events,
        req.params,
        baseline=req.baseline.snapshot if req.baseline else None,
        baseline_value_units=req.baseline_value_units,
    )

    completeness = classify_completeness(output.blocking_issues, output.risks)
    run_id = f"sim_{uuid.uuid4()}"
    logger.info(
        "Simulation run %s for %s: completeness=%s",
        run_id,
        req.candidate.config_version_id,
        completeness,
    )

    return {
        "simulation_run_id": run_id,
        "candidate_config_version_id": req.candidate.config_version_id,
        "baseline_config_version_id": req.baseline.config_version_id if req.baseline else None,
        "input": _run_input(req.params, output.economics_summary["assumptions"]),
        "output": output.to_dict(),
        "completeness_result": completeness,
    }
