# pricing_governance/simulation/projections.py
"""
Annualized and churn-adjusted projections from a short observation window.

- annualization_factor = 365 / historical_window_days
- monthly churn from an annual rate: 1 - (1 - annual) ** (1/12)
- retention_sum = sum of r**k for k in 0..horizon-1 (geometric series)
- churn-adjusted amount = amount * (30 / window_days) * retention_sum

Projections are advisory; nothing downstream gates on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pricing_governance.simulation.economics import EconomicsTotals

DEFAULT_CHURN_HORIZON_MONTHS = 12

# Annual churn assumption by cycle stage
STAGE_ANNUAL_CHURN = {
    "scaling": 0.25,
    "learning": 0.50,
}
FALLBACK_ANNUAL_CHURN = STAGE_ANNUAL_CHURN["learning"]


def default_annual_churn_rate(stage: Optional[str]) -> float:
    return STAGE_ANNUAL_CHURN.get(stage or "", FALLBACK_ANNUAL_CHURN)


@dataclass(frozen=True)
class ChurnAssumptions:
    annual_churn_rate: float
    monthly_churn_rate: float
    retention_sum: float
    annualization_factor: float
    churn_horizon_months: int


def compute_churn_assumptions(
    stage: Optional[str],
    historical_window_days: float,
    annual_churn_rate: Optional[float] = None,
    churn_horizon_months: int = DEFAULT_CHURN_HORIZON_MONTHS,
) -> ChurnAssumptions:
    annual = annual_churn_rate if annual_churn_rate is not None else default_annual_churn_rate(stage)
    monthly = 1 - (1 - annual) ** (1 / 12)
    r = 1 - monthly
    if r == 1:
        retention_sum = float(churn_horizon_months)
    else:
        retention_sum = (1 - r ** churn_horizon_months) / (1 - r)
    return ChurnAssumptions(
        annual_churn_rate=annual,
        monthly_churn_rate=monthly,
        retention_sum=retention_sum,
        annualization_factor=365 / historical_window_days,
        churn_horizon_months=churn_horizon_months,
    )


def annualize(amount: float, historical_window_days: float) -> float:
    return amount * (365 / historical_window_days)


def churn_adjust(amount: float, historical_window_days: float, retention_sum: float) -> float:
    monthly_run_rate = amount * (30 / historical_window_days)
    return monthly_run_rate * retention_sum


def project_summary(
    totals: EconomicsTotals,
    historical_window_days: float,
    churn: ChurnAssumptions,
) -> Dict[str, Any]:
    """Projection fields attached to an economics summary."""
    w = historical_window_days
    return {
        "revenue_annualized_usd": annualize(totals.revenue_billed_usd, w),
        "cost_annualized_usd": annualize(totals.cost_usd, w),
        "revenue_12mo_churn_adjusted_usd": churn_adjust(totals.revenue_billed_usd, w, churn.retention_sum),
        "cost_12mo_churn_adjusted_usd": churn_adjust(totals.cost_usd, w, churn.retention_sum),
        # cost is not commit-floor specific, so only revenue is projected here
        "revenue_commit_floor_annualized_usd": annualize(totals.revenue_commit_floor_usd_total, w),
        "revenue_commit_floor_12mo_churn_adjusted_usd": churn_adjust(
            totals.revenue_commit_floor_usd_total, w, churn.retention_sum
        ),
    }
