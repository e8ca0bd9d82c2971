# pricing_governance/simulation/risk.py
"""
Rails evaluation, exploration depth and completeness classification.

Risks are advisory (rail breaches). Blocking issues mean at least one pool
could not be priced. Completeness: red if blocking issues, amber if risks,
green otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from pricing_governance.pricing.config import ExplorationConfig, RailsConfig

MARGIN_FLOOR_RISK_PREFIX = "margin_floor violated"


def _fmt(x: float) -> str:
    return str(int(x)) if float(x).is_integer() else str(x)


@dataclass(frozen=True)
class RailsEvaluation:
    risks: List[str] = field(default_factory=list)
    margin_floor_violations: int = 0


def evaluate_rails(rails: RailsConfig, margin: Optional[float], cost_usd: float) -> RailsEvaluation:
    risks: List[str] = []
    violations = 0

    if margin is not None and rails.margin_floor is not None and margin < rails.margin_floor:
        risks.append(f"{MARGIN_FLOOR_RISK_PREFIX}: margin={margin:.3f} < {_fmt(rails.margin_floor)}")
        violations = 1

    if rails.monthly_spend_cap_usd is not None and cost_usd > rails.monthly_spend_cap_usd:
        risks.append(f"spend cap exceeded: cost_usd={cost_usd:.2f} > {_fmt(rails.monthly_spend_cap_usd)}")

    return RailsEvaluation(risks=risks, margin_floor_violations=violations)


def exploration_depth(
    exploration: ExplorationConfig,
    events: Sequence[Mapping[str, Any]],
    include_exploration_in_results: bool,
) -> int:
    if not include_exploration_in_results or not exploration.enabled:
        return 0
    qualifying = set(exploration.qualifying_events)
    return sum(1 for e in events if e.get("event_type") in qualifying)


def classify_completeness(blocking_issues: Sequence[str], risks: Sequence[str]) -> str:
    if blocking_issues:
        return "red"
    if risks:
        return "amber"
    return "green"
