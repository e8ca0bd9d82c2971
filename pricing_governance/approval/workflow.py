# pricing_governance/approval/workflow.py
"""
Approval / activation workflow.

Given a candidate config version, its cycle, the sibling config versions for
the same subject and a simulation run record, decide whether the candidate
may be activated and produce the artifacts of the decision:
- config diff (baseline -> candidate snapshots)
- billing patch payload
- decision record
- status transitions (candidate -> active, previous active -> archived)

Persistence is the caller's job; everything here is pure.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pricing_governance.pricing.config import ConfigVersion, PricingCycle

logger = logging.getLogger(__name__)

PRODUCTION = "production"
PRODUCTION_PERIOD_LENGTH_DAYS = 90
REQUIRED_USAGE_THRESHOLDS = (70, 90, 100)


class ApprovalError(ValueError):
    """Activation refused."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _same_subject(a: ConfigVersion, b: ConfigVersion) -> bool:
    return a.subject_resolution() == b.subject_resolution()


def find_active_baseline(candidate: ConfigVersion, configs: Sequence[ConfigVersion]) -> Optional[ConfigVersion]:
    """Newest active config for the candidate's subject, never the candidate itself."""
    active = [
        c for c in configs
        if c.status == "active"
        and c.config_version_id != candidate.config_version_id
        and _same_subject(c, candidate)
    ]
    if not active:
        return None
    return max(active, key=lambda c: c.created_at or "")


def baseline_options(candidate: ConfigVersion, configs: Sequence[ConfigVersion]) -> List[Dict[str, Any]]:
    options = [
        c for c in configs
        if c.config_version_id != candidate.config_version_id and _same_subject(c, candidate)
    ]
    options.sort(key=lambda c: c.version, reverse=True)
    return [
        {"config_version_id": c.config_version_id, "version": c.version, "status": c.status}
        for c in options
    ]


def production_readiness_errors(candidate: ConfigVersion, cycle: PricingCycle) -> List[str]:
    """Gating for production activation. Non-production targets are never gated here."""
    if candidate.target_environment != PRODUCTION:
        return []

    if cycle.cycle_type != PRODUCTION or cycle.period_length_days != PRODUCTION_PERIOD_LENGTH_DAYS:
        return [
            f"Production activation requires cycle_type=production and "
            f"period_length_days={PRODUCTION_PERIOD_LENGTH_DAYS}"
        ]

    errors: List[str] = []
    rails = candidate.snapshot.rails

    cap = rails.monthly_spend_cap_usd
    if cap is None or not math.isfinite(cap) or cap < 0:
        errors.append("Rails incomplete for production activation: monthly_spend_cap_usd must be a number >= 0")

    floor = rails.margin_floor
    if floor is None or not math.isfinite(floor) or not 0 <= floor <= 1:
        errors.append(
            "Rails incomplete for production activation: margin_floor must be a number between 0 and 1 inclusive"
        )

    percents = {t.percent for t in rails.usage_thresholds}
    missing = [p for p in REQUIRED_USAGE_THRESHOLDS if p not in percents]
    if missing:
        errors.append(
            "Rails incomplete for production activation: usage_thresholds missing "
            + ", ".join(f"{p}%" for p in missing)
        )
    return errors


def build_config_diff(baseline: Optional[ConfigVersion], candidate: ConfigVersion) -> Dict[str, Any]:
    return {
        "baseline_config_version_id": baseline.config_version_id if baseline else None,
        "candidate_config_version_id": candidate.config_version_id,
        "before": baseline.snapshot.to_dict() if baseline else None,
        "after": candidate.snapshot.to_dict(),
    }


def build_billing_patch(candidate: ConfigVersion, effective_at: str) -> Dict[str, Any]:
    billing_patch_id = f"bp_{uuid.uuid4()}"
    return {
        "billing_patch_id": billing_patch_id,
        "config_version_id": candidate.config_version_id,
        "workspace_id": candidate.workspace_id,
        "cycle_id": candidate.cycle_id,
        "price_book_ref": candidate.price_book_ref,
        "effective_at": effective_at,
        "payload": {
            "billing_patch_id": billing_patch_id,
            "generated_at": _now_iso(),
            "config_version_id": candidate.config_version_id,
            "price_book_ref": candidate.price_book_ref,
            "note": "Patch generated for review; not pushed to the billing provider",
        },
    }


@dataclass(frozen=True)
class Approver:
    name: str
    role: str
    rationale: str


@dataclass(frozen=True)
class ApprovalResult:
    decision_record: Dict[str, Any]
    billing_patch: Dict[str, Any]
    status_changes: Dict[str, str] = field(default_factory=dict)

    @property
    def decision_id(self) -> str:
        return self.decision_record["decision_id"]

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["decision_id"] = self.decision_id
        out["config_version_id"] = self.decision_record["config_version_id"]
        out["billing_patch_id"] = self.billing_patch["billing_patch_id"]
        out["status"] = "active"
        return out


def _require_approver(raw: Mapping[str, Any]) -> Approver:
    name, role, rationale = raw.get("approver_name"), raw.get("approver_role"), raw.get("rationale")
    if not name or not role or not rationale:
        raise ApprovalError("Missing required fields: approver_name, approver_role, rationale")
    return Approver(name=str(name), role=str(role), rationale=str(rationale))


def approve(
    candidate: ConfigVersion,
    cycle: PricingCycle,
    simulation_run: Mapping[str, Any],
    approver: Mapping[str, Any],
    *,
    configs: Sequence[ConfigVersion] = (),
    effective_at: Optional[str] = None,
) -> ApprovalResult:
    """
    Activate a candidate config based on a simulation run.

    Raises ApprovalError when the approver fields are incomplete, the run does
    not belong to the candidate, production rails/cycle gating fails, or a
    production activation is attempted on an incomplete (red) simulation.
    """
    who = _require_approver(approver)

    run_id = simulation_run.get("simulation_run_id")
    if not run_id:
        raise ApprovalError("Missing required fields: simulation_run_id")
    if simulation_run.get("candidate_config_version_id") != candidate.config_version_id:
        raise ApprovalError("SimulationRun does not belong to this config_version_id")
    if cycle.cycle_id != candidate.cycle_id:
        raise ApprovalError("Cycle does not belong to this config_version_id")

    errors = production_readiness_errors(candidate, cycle)
    if errors:
        raise ApprovalError("; ".join(errors))

    if candidate.target_environment == PRODUCTION and simulation_run.get("completeness_result") == "red":
        raise ApprovalError("Production activation blocked: simulation has blocking issues")

    effective = effective_at or _now_iso()
    baseline = find_active_baseline(candidate, configs)
    patch = build_billing_patch(candidate, effective)

    status_changes = {candidate.config_version_id: "active"}
    if baseline is not None:
        status_changes[baseline.config_version_id] = "archived"

    decision = {
        "decision_id": f"dec_{uuid.uuid4()}",
        "config_version_id": candidate.config_version_id,
        "cycle_id": candidate.cycle_id,
        "baseline_config_version_id": baseline.config_version_id if baseline else None,
        "billing_patch_id": patch["billing_patch_id"],
        "subject_resolution": candidate.subject_resolution(),
        "value_unit_snapshot_version": candidate.value_unit_snapshot_version,
        "approver_name": who.name,
        "approver_role": who.role,
        "rationale": who.rationale,
        "diff": build_config_diff(baseline, candidate),
        "simulation_run_id": run_id,
        "effective_at": effective,
    }

    logger.info(
        "Approved %s (decision %s, archived baseline %s)",
        candidate.config_version_id,
        decision["decision_id"],
        baseline.config_version_id if baseline else None,
    )
    return ApprovalResult(decision_record=decision, billing_patch=patch, status_changes=status_changes)
