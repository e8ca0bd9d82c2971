# pricing_governance/pricing/pool.py
"""
Pool pricing.

Provides:
- effective pricing mode / commit semantics per pool (pool override > run default)
- unit economics validation (invalid -> blocking issue, pool skipped)
- billed revenue, cost and diagnostic revenue components for one pool

Billing by mode:
- use_unit_economics   : overage_units * price (included quantity is pre-paid)
- revenue_proxy_total  : total_units * price
- revenue_proxy_commit : commit_floor     -> max(included_units * price, total_units * price)
                         entitlement_only -> total_units * price
Cost is always total_units * cost, whatever the mode.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from pricing_governance.pricing.config import (
    CommitSemantics,
    PricingMode,
    UsagePool,
    ValueUnitDefinition,
)


@dataclass(frozen=True)
class PoolPricing:
    pool_id: str
    value_unit_id: str
    total_units: float
    included_units: float
    overage_units: float
    avg_cost_per_unit_usd: float
    target_price_per_unit_usd: float
    cost_usd: float
    revenue_billed_usd: float
    revenue_commit_floor_usd: float
    revenue_usage_total_usd: float
    revenue_usage_overage_usd: float
    pricing_mode_used: PricingMode
    commit_semantics_used: Optional[CommitSemantics]

    @property
    def priced_as_commit(self) -> bool:
        return self.pricing_mode_used == PricingMode.REVENUE_PROXY_COMMIT

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["pricing_mode_used"] = self.pricing_mode_used.value
        out["commit_semantics_used"] = (
            self.commit_semantics_used.value if self.commit_semantics_used is not None else None
        )
        # Older consumers read revenue_usd.
        out["revenue_usd"] = self.revenue_billed_usd
        return out


def resolve_pool_modes(
    pool_id: str,
    pricing_mode: PricingMode,
    commit_semantics: CommitSemantics,
    pool_pricing_mode_overrides: Optional[Mapping[str, PricingMode]] = None,
    pool_commit_semantics_overrides: Optional[Mapping[str, CommitSemantics]] = None,
) -> Tuple[PricingMode, Optional[CommitSemantics]]:
    """
    Commit semantics only apply to pools priced under revenue_proxy_commit;
    for every other mode the second value is None.
    """
    mode = PricingMode((pool_pricing_mode_overrides or {}).get(pool_id, pricing_mode))
    if mode != PricingMode.REVENUE_PROXY_COMMIT:
        return mode, None
    semantics = (pool_commit_semantics_overrides or {}).get(pool_id, commit_semantics)
    return mode, CommitSemantics(semantics) if semantics is not None else None


def _valid_rate(v: Optional[float]) -> bool:
    return v is not None and bool(np.isfinite(v)) and v >= 0


def unit_economics_issue(vu: ValueUnitDefinition) -> Optional[str]:
    econ = vu.unit_economics
    if not _valid_rate(econ.avg_cost_per_unit_usd):
        return f"Missing unit_economics.avg_cost_per_unit_usd for {vu.value_unit_id}"
    if not _valid_rate(econ.target_price_per_unit_usd):
        return f"Missing unit_economics.target_price_per_unit_usd for {vu.value_unit_id}"
    return None


def compute_billed_revenue(
    mode: PricingMode,
    semantics: Optional[CommitSemantics],
    *,
    usage_total: float,
    usage_overage: float,
    commit_floor: float,
) -> float:
    if mode == PricingMode.USE_UNIT_ECONOMICS:
        return usage_overage
    if mode == PricingMode.REVENUE_PROXY_TOTAL:
        return usage_total
    if semantics == CommitSemantics.ENTITLEMENT_ONLY:
        return usage_total
    # commit_floor, and the fallback for unset semantics
    return max(commit_floor, usage_total)


def price_pool(
    pool: UsagePool,
    vu: ValueUnitDefinition,
    total_units: float,
    mode: PricingMode,
    semantics: Optional[CommitSemantics],
) -> PoolPricing:
    """
    Price one pool. The caller has already checked unit_economics_issue(vu).
    """
    cost_per_unit = float(vu.unit_economics.avg_cost_per_unit_usd or 0.0)
    price_per_unit = float(vu.unit_economics.target_price_per_unit_usd or 0.0)

    included = float(pool.included_quantity)
    overage = max(0.0, total_units - included)

    usage_total = total_units * price_per_unit
    usage_overage = overage * price_per_unit
    commit_floor = included * price_per_unit

    billed = compute_billed_revenue(
        mode,
        semantics,
        usage_total=usage_total,
        usage_overage=usage_overage,
        commit_floor=commit_floor,
    )

    return PoolPricing(
        pool_id=pool.pool_id,
        value_unit_id=pool.value_unit_id,
        total_units=float(total_units),
        included_units=included,
        overage_units=overage,
        avg_cost_per_unit_usd=cost_per_unit,
        target_price_per_unit_usd=price_per_unit,
        cost_usd=total_units * cost_per_unit,
        revenue_billed_usd=billed,
        revenue_commit_floor_usd=commit_floor if mode == PricingMode.REVENUE_PROXY_COMMIT else 0.0,
        revenue_usage_total_usd=usage_total,
        revenue_usage_overage_usd=usage_overage,
        pricing_mode_used=mode,
        commit_semantics_used=semantics,
    )
