import pytest

from pricing_governance.pricing.config import CommitSemantics, PricingMode, UsagePool
from pricing_governance.pricing.pool import (
    compute_billed_revenue,
    price_pool,
    resolve_pool_modes,
    unit_economics_issue,
)

from conftest import value_unit

POOL = UsagePool(pool_id="pool_main", value_unit_id="vu_render", included_quantity=100)


def _price(total_units, mode, semantics=None, pool=POOL):
    return price_pool(pool, value_unit(cost=1.0, price=2.0), total_units, mode, semantics)


def test_use_unit_economics_bills_overage_only():
    p = _price(150, PricingMode.USE_UNIT_ECONOMICS)
    assert p.overage_units == 50
    assert p.revenue_billed_usd == 100
    assert p.cost_usd == 150
    assert p.revenue_usage_total_usd == 300
    assert p.revenue_commit_floor_usd == 0
    assert p.commit_semantics_used is None


def test_revenue_proxy_total_bills_all_usage():
    p = _price(150, PricingMode.REVENUE_PROXY_TOTAL)
    assert p.revenue_billed_usd == 300
    assert p.revenue_usage_overage_usd == 100


@pytest.mark.parametrize(
    "total_units, semantics, billed",
    [
        (150, CommitSemantics.COMMIT_FLOOR, 300),
        (40, CommitSemantics.COMMIT_FLOOR, 200),
        (40, CommitSemantics.ENTITLEMENT_ONLY, 80),
        (40, None, 200),
    ],
)
def test_revenue_proxy_commit(total_units, semantics, billed):
    p = _price(total_units, PricingMode.REVENUE_PROXY_COMMIT, semantics)
    assert p.revenue_billed_usd == billed
    assert p.revenue_commit_floor_usd == 200


def test_overage_never_negative():
    p = _price(10, PricingMode.USE_UNIT_ECONOMICS)
    assert p.overage_units == 0
    assert p.revenue_billed_usd == 0
    assert p.cost_usd == 10


@pytest.mark.parametrize("units", [0, 50, 100, 150, 1000])
def test_mode_monotonicity(units):
    by_overage = _price(units, PricingMode.USE_UNIT_ECONOMICS).revenue_billed_usd
    by_total = _price(units, PricingMode.REVENUE_PROXY_TOTAL).revenue_billed_usd
    commit = _price(units, PricingMode.REVENUE_PROXY_COMMIT, CommitSemantics.COMMIT_FLOOR)
    assert by_total >= by_overage
    assert commit.revenue_billed_usd >= commit.revenue_usage_total_usd
    assert commit.revenue_billed_usd >= 200


def test_compute_billed_revenue_fallback_is_commit_floor():
    assert compute_billed_revenue(
        PricingMode.REVENUE_PROXY_COMMIT, None, usage_total=5.0, usage_overage=0.0, commit_floor=9.0
    ) == 9.0


def test_pool_overrides_take_precedence_independently():
    modes = {"pool_a": PricingMode.REVENUE_PROXY_COMMIT}
    semantics = {"pool_a": CommitSemantics.ENTITLEMENT_ONLY, "pool_b": CommitSemantics.ENTITLEMENT_ONLY}

    assert resolve_pool_modes(
        "pool_a", PricingMode.REVENUE_PROXY_TOTAL, CommitSemantics.COMMIT_FLOOR, modes, semantics
    ) == (PricingMode.REVENUE_PROXY_COMMIT, CommitSemantics.ENTITLEMENT_ONLY)

    # semantics override is ignored while the pool is not priced as commit
    assert resolve_pool_modes(
        "pool_b", PricingMode.REVENUE_PROXY_TOTAL, CommitSemantics.COMMIT_FLOOR, modes, semantics
    ) == (PricingMode.REVENUE_PROXY_TOTAL, None)

    assert resolve_pool_modes(
        "pool_c", PricingMode.REVENUE_PROXY_COMMIT, CommitSemantics.COMMIT_FLOOR, modes, semantics
    ) == (PricingMode.REVENUE_PROXY_COMMIT, CommitSemantics.COMMIT_FLOOR)


@pytest.mark.parametrize(
    "cost, price, expected",
    [
        (1.0, 2.0, None),
        (0, 0, None),
        (None, 2.0, "Missing unit_economics.avg_cost_per_unit_usd for vu_render"),
        (-1.0, 2.0, "Missing unit_economics.avg_cost_per_unit_usd for vu_render"),
        ("1.0", 2.0, "Missing unit_economics.avg_cost_per_unit_usd for vu_render"),
        (1.0, float("inf"), "Missing unit_economics.target_price_per_unit_usd for vu_render"),
        (1.0, float("nan"), "Missing unit_economics.target_price_per_unit_usd for vu_render"),
    ],
)
def test_unit_economics_issue(cost, price, expected):
    assert unit_economics_issue(value_unit(cost=cost, price=price)) == expected


def test_pool_record_shape():
    out = _price(150, PricingMode.REVENUE_PROXY_COMMIT, CommitSemantics.COMMIT_FLOOR).to_dict()
    assert out["pricing_mode_used"] == "revenue_proxy_commit"
    assert out["commit_semantics_used"] == "commit_floor"
    assert out["revenue_usd"] == out["revenue_billed_usd"] == 300
    for key in (
        "total_units",
        "included_units",
        "overage_units",
        "cost_usd",
        "revenue_commit_floor_usd",
        "revenue_usage_total_usd",
        "revenue_usage_overage_usd",
    ):
        assert key in out
