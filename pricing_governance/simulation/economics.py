# pricing_governance/simulation/economics.py
"""
Config-level economics: sum pool figures, scale by customer count, derive margins.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from pricing_governance.pricing.pool import PoolPricing

MARGIN_EPSILON = 1e-9


@dataclass(frozen=True)
class EconomicsTotals:
    revenue_billed_usd: float = 0.0
    cost_usd: float = 0.0
    revenue_commit_floor_usd_total: float = 0.0
    revenue_usage_total_usd: float = 0.0
    revenue_usage_overage_usd: float = 0.0


def aggregate_pools(pools: Iterable[PoolPricing]) -> EconomicsTotals:
    billed = cost = commit_floor = usage_total = usage_overage = 0.0
    for p in pools:
        billed += p.revenue_billed_usd
        cost += p.cost_usd
        # only pools priced under revenue_proxy_commit carry a commit floor
        commit_floor += p.revenue_commit_floor_usd if p.priced_as_commit else 0.0
        usage_total += p.revenue_usage_total_usd
        usage_overage += p.revenue_usage_overage_usd
    return EconomicsTotals(
        revenue_billed_usd=billed,
        cost_usd=cost,
        revenue_commit_floor_usd_total=commit_floor,
        revenue_usage_total_usd=usage_total,
        revenue_usage_overage_usd=usage_overage,
    )


def scale(totals: EconomicsTotals, segment_customer_count: float) -> EconomicsTotals:
    """Treat the sampled usage as representative of `segment_customer_count` customers."""
    k = float(segment_customer_count)
    return replace(
        totals,
        revenue_billed_usd=totals.revenue_billed_usd * k,
        cost_usd=totals.cost_usd * k,
        revenue_commit_floor_usd_total=totals.revenue_commit_floor_usd_total * k,
        revenue_usage_total_usd=totals.revenue_usage_total_usd * k,
        revenue_usage_overage_usd=totals.revenue_usage_overage_usd * k,
    )


def safe_margin(revenue: float, cost: float) -> Optional[float]:
    """(revenue - cost) / revenue, or None when there is no positive revenue basis."""
    if revenue <= 0:
        return None
    return (revenue - cost) / max(revenue, MARGIN_EPSILON)


def margin_pair(totals: EconomicsTotals) -> tuple[Optional[float], Optional[float]]:
    """(margin on billed revenue, margin on commit-floor revenue)."""
    return (
        safe_margin(totals.revenue_billed_usd, totals.cost_usd),
        safe_margin(totals.revenue_commit_floor_usd_total, totals.cost_usd),
    )
