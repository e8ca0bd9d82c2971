# pricing_governance/simulation/engine.py
"""
Simulation engine.

Flow (pure, deterministic):
event feed + config -> usage per value unit -> pool pricing -> aggregate economics
-> projections -> rails / exploration -> SimulationOutput

The optional baseline reruns the economics stages against a second config with
the same events, overrides and customer-count scaling. Only its economics
summary is reported; no risks or blocking issues are computed for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pricing_governance.pricing.config import (
    CommitSemantics,
    ConfigurationSnapshot,
    PricingMode,
    ValueUnitDefinition,
)
from pricing_governance.pricing.pool import PoolPricing, price_pool, resolve_pool_modes, unit_economics_issue
from pricing_governance.simulation.economics import EconomicsTotals, aggregate_pools, margin_pair, scale
from pricing_governance.simulation.projections import (
    DEFAULT_CHURN_HORIZON_MONTHS,
    ChurnAssumptions,
    compute_churn_assumptions,
    project_summary,
)
from pricing_governance.simulation.risk import evaluate_rails, exploration_depth
from pricing_governance.usage.resolver import filter_events, resolve_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationFilters:
    workspace_id: Optional[str] = None
    segment: Optional[str] = None
    stage: Optional[str] = None
    target_environment: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "workspace_id": self.workspace_id,
            "segment": self.segment,
            "stage": self.stage,
            "target_environment": self.target_environment,
        }


@dataclass(frozen=True)
class SimulationParameters:
    historical_window_days: float
    filters: SimulationFilters = field(default_factory=SimulationFilters)
    pricing_mode: PricingMode = PricingMode.USE_UNIT_ECONOMICS
    include_exploration_in_results: bool = True
    segment_customer_count: float = 1
    annual_churn_rate: Optional[float] = None
    churn_horizon_months: int = DEFAULT_CHURN_HORIZON_MONTHS
    pool_pricing_mode_overrides: Dict[str, PricingMode] = field(default_factory=dict)
    commit_semantics: CommitSemantics = CommitSemantics.COMMIT_FLOOR
    pool_commit_semantics_overrides: Dict[str, CommitSemantics] = field(default_factory=dict)


@dataclass(frozen=True)
class SimulationOutput:
    lens_metrics: Dict[str, int]
    economics_summary: Dict[str, Any]
    pool_breakdown: List[PoolPricing]
    exploration_summary: Dict[str, Any]
    risks: List[str]
    blocking_issues: List[str]
    baseline_summary: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lens_metrics": dict(self.lens_metrics),
            "economics_summary": self.economics_summary,
            "pool_breakdown": [p.to_dict() for p in self.pool_breakdown],
            "exploration_summary": dict(self.exploration_summary),
            "risks": list(self.risks),
            "blocking_issues": list(self.blocking_issues),
            "baseline_summary": self.baseline_summary,
        }


def _price_configuration(
    snapshot: ConfigurationSnapshot,
    value_units: Sequence[ValueUnitDefinition],
    events: Sequence[Mapping[str, Any]],
    params: SimulationParameters,
) -> Tuple[List[PoolPricing], List[str]]:
    """Price every pool of a config. Unpriceable pools are skipped and reported."""
    vu_by_id = {vu.value_unit_id: vu for vu in value_units}
    units_by_vu: Dict[str, float] = {}
    priced: List[PoolPricing] = []
    issues: List[str] = []

    for pool in snapshot.pools:
        vu = vu_by_id.get(pool.value_unit_id)
        if vu is None:
            issues.append(f"Pool references missing value_unit_id: {pool.value_unit_id}")
            continue

        issue = unit_economics_issue(vu)
        if issue is not None:
            issues.append(issue)
            continue

        if vu.value_unit_id not in units_by_vu:
            units_by_vu[vu.value_unit_id] = resolve_quantity(vu.event_mapping, events)

        mode, semantics = resolve_pool_modes(
            pool.pool_id,
            params.pricing_mode,
            params.commit_semantics,
            params.pool_pricing_mode_overrides,
            params.pool_commit_semantics_overrides,
        )
        priced.append(price_pool(pool, vu, units_by_vu[vu.value_unit_id], mode, semantics))

    return priced, issues


def _economics_summary(
    totals: EconomicsTotals,
    params: SimulationParameters,
    churn: ChurnAssumptions,
) -> Dict[str, Any]:
    margin, margin_commit_floor = margin_pair(totals)
    summary: Dict[str, Any] = {
        "revenue_usd": totals.revenue_billed_usd,
        "revenue_billed_usd": totals.revenue_billed_usd,
        "revenue_commit_floor_usd_total": totals.revenue_commit_floor_usd_total,
        "revenue_usage_total_usd": totals.revenue_usage_total_usd,
        "revenue_usage_overage_usd": totals.revenue_usage_overage_usd,
        "cost_usd": totals.cost_usd,
        "margin": margin,
        "margin_commit_floor": margin_commit_floor,
    }
    summary.update(project_summary(totals, params.historical_window_days, churn))
    summary["assumptions"] = {
        "segment_customer_count": params.segment_customer_count,
        "annual_churn_rate": churn.annual_churn_rate,
        "monthly_churn_rate": churn.monthly_churn_rate,
        "annualization_factor": churn.annualization_factor,
        "churn_horizon_months": churn.churn_horizon_months,
    }
    return summary


def run_simulation(
    candidate: ConfigurationSnapshot,
    candidate_value_units: Sequence[ValueUnitDefinition],
    events: Sequence[Mapping[str, Any]],
    params: SimulationParameters,
    *,
    baseline: Optional[ConfigurationSnapshot] = None,
    baseline_value_units: Optional[Sequence[ValueUnitDefinition]] = None,
) -> SimulationOutput:
    """
    Simulate a candidate config (and optionally a baseline) over historical usage.

    Data-quality problems never raise: they zero the affected pool and are
    listed in blocking_issues. Enum values and a positive window are assumed
    to be validated by the caller.
    """
    scoped = filter_events(
        events,
        workspace_id=params.filters.workspace_id,
        segment=params.filters.segment,
    )

    churn = compute_churn_assumptions(
        params.filters.stage,
        params.historical_window_days,
        params.annual_churn_rate,
        params.churn_horizon_months,
    )

    pools, blocking_issues = _price_configuration(candidate, candidate_value_units, scoped, params)
    totals = scale(aggregate_pools(pools), params.segment_customer_count)
    summary = _economics_summary(totals, params, churn)

    rails = evaluate_rails(candidate.rails, summary["margin"], totals.cost_usd)
    depth = exploration_depth(candidate.exploration, scoped, params.include_exploration_in_results)

    baseline_summary = None
    if baseline is not None:
        base_units = baseline_value_units if baseline_value_units is not None else candidate_value_units
        base_pools, _ = _price_configuration(baseline, base_units, scoped, params)
        base_totals = scale(aggregate_pools(base_pools), params.segment_customer_count)
        baseline_summary = _economics_summary(base_totals, params, churn)

    logger.info(
        "Simulation done: events=%d pools=%d/%d blocking=%d risks=%d baseline=%s",
        len(scoped),
        len(pools),
        len(candidate.pools),
        len(blocking_issues),
        len(rails.risks),
        baseline is not None,
    )

    return SimulationOutput(
        lens_metrics={
            "exploration_depth": depth,
            "margin_floor_violations": rails.margin_floor_violations,
        },
        economics_summary=summary,
        pool_breakdown=pools,
        exploration_summary={
            "enabled": bool(params.include_exploration_in_results and candidate.exploration.enabled),
            "exploration_depth": depth,
        },
        risks=rails.risks,
        blocking_issues=blocking_issues,
        baseline_summary=baseline_summary,
    )
