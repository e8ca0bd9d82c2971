import pytest

from pricing_governance.pricing.config import CommitSemantics, PricingMode
from pricing_governance.simulation.engine import SimulationFilters, SimulationParameters, run_simulation

from conftest import make_events, snapshot, value_unit


def _params(**overrides):
    base = dict(
        historical_window_days=30,
        filters=SimulationFilters(workspace_id="ws_1", segment="smb", stage="learning"),
        pricing_mode=PricingMode.USE_UNIT_ECONOMICS,
    )
    base.update(overrides)
    return SimulationParameters(**base)


def test_use_unit_economics_example(render_events, render_value_units):
    out = run_simulation(snapshot(), render_value_units, render_events, _params())
    econ = out.economics_summary

    pool = out.pool_breakdown[0]
    assert pool.total_units == 150
    assert pool.overage_units == 50
    assert econ["revenue_billed_usd"] == 100
    assert econ["revenue_usd"] == 100
    assert econ["cost_usd"] == 150
    assert econ["margin"] == pytest.approx(-0.5)
    assert econ["margin_commit_floor"] is None
    assert out.blocking_issues == []


def test_commit_floor_example(render_events, render_value_units):
    params = _params(pricing_mode=PricingMode.REVENUE_PROXY_COMMIT, commit_semantics=CommitSemantics.COMMIT_FLOOR)
    out = run_simulation(snapshot(), render_value_units, render_events, params)
    econ = out.economics_summary

    assert econ["revenue_commit_floor_usd_total"] == 200
    assert econ["revenue_usage_total_usd"] == 300
    assert econ["revenue_billed_usd"] == 300
    assert econ["margin"] == pytest.approx(0.5)
    assert econ["margin_commit_floor"] == pytest.approx((200 - 150) / 200)


def test_margin_is_null_without_revenue(render_value_units):
    out = run_simulation(snapshot(), render_value_units, make_events(80), _params())
    econ = out.economics_summary
    assert econ["revenue_billed_usd"] == 0
    assert econ["margin"] is None
    assert econ["cost_usd"] == 80
    # no margin -> margin floor cannot be violated
    assert out.lens_metrics["margin_floor_violations"] == 0


def test_missing_value_unit_blocks_and_contributes_nothing(render_events, render_value_units):
    snap = snapshot(pools=[
        {"pool_id": "pool_main", "value_unit_id": "vu_render", "included_quantity": 100},
        {"pool_id": "pool_ghost", "value_unit_id": "vu_missing", "included_quantity": 5},
    ])
    out = run_simulation(snap, render_value_units, render_events, _params())

    assert out.blocking_issues == ["Pool references missing value_unit_id: vu_missing"]
    assert [p.pool_id for p in out.pool_breakdown] == ["pool_main"]
    assert out.economics_summary["revenue_billed_usd"] == 100
    assert out.economics_summary["cost_usd"] == 150


def test_invalid_unit_economics_blocks_pool(render_events):
    vus = [value_unit(cost=None)]
    out = run_simulation(snapshot(), vus, render_events, _params())
    assert out.blocking_issues == ["Missing unit_economics.avg_cost_per_unit_usd for vu_render"]
    assert out.pool_breakdown == []
    assert out.economics_summary["cost_usd"] == 0
    assert out.economics_summary["margin"] is None


def test_customer_count_scales_linearly(render_events, render_value_units):
    params = dict(pricing_mode=PricingMode.REVENUE_PROXY_COMMIT)
    one = run_simulation(snapshot(), render_value_units, render_events, _params(segment_customer_count=3, **params))
    two = run_simulation(snapshot(), render_value_units, render_events, _params(segment_customer_count=6, **params))
    a, b = one.economics_summary, two.economics_summary

    for key in ("revenue_billed_usd", "cost_usd", "revenue_commit_floor_usd_total", "revenue_usage_total_usd"):
        assert b[key] == pytest.approx(2 * a[key])
    assert b["margin"] == pytest.approx(a["margin"])
    assert b["margin_commit_floor"] == pytest.approx(a["margin_commit_floor"])
    assert b["assumptions"]["segment_customer_count"] == 6


def test_pool_breakdown_is_not_scaled(render_events, render_value_units):
    out = run_simulation(snapshot(), render_value_units, render_events, _params(segment_customer_count=10))
    assert out.pool_breakdown[0].revenue_billed_usd == 100
    assert out.economics_summary["revenue_billed_usd"] == 1000


def test_commit_floor_total_only_counts_commit_priced_pools(render_events, render_value_units):
    snap = snapshot(pools=[
        {"pool_id": "pool_a", "value_unit_id": "vu_render", "included_quantity": 100},
        {"pool_id": "pool_b", "value_unit_id": "vu_render", "included_quantity": 200},
    ])
    params = _params(
        pricing_mode=PricingMode.REVENUE_PROXY_TOTAL,
        pool_pricing_mode_overrides={"pool_b": PricingMode.REVENUE_PROXY_COMMIT},
        pool_commit_semantics_overrides={"pool_b": CommitSemantics.COMMIT_FLOOR},
    )
    out = run_simulation(snap, render_value_units, render_events, params)
    econ = out.economics_summary

    assert econ["revenue_commit_floor_usd_total"] == 400
    # pool_a bills 300 total; pool_b bills max(400, 300)
    assert econ["revenue_billed_usd"] == 700
    assert [p.pricing_mode_used for p in out.pool_breakdown] == [
        PricingMode.REVENUE_PROXY_TOTAL,
        PricingMode.REVENUE_PROXY_COMMIT,
    ]


def test_run_filters_scope_events(render_value_units):
    events = make_events(150) + make_events(500, workspace_id="ws_other")
    out = run_simulation(snapshot(), render_value_units, events, _params())
    assert out.pool_breakdown[0].total_units == 150


def test_rails_produce_risks(render_events, render_value_units):
    snap = snapshot(rails={"margin_floor": 0.2, "monthly_spend_cap_usd": 100})
    out = run_simulation(snap, render_value_units, render_events, _params())

    assert out.risks == [
        "margin_floor violated: margin=-0.500 < 0.2",
        "spend cap exceeded: cost_usd=150.00 > 100",
    ]
    assert out.lens_metrics["margin_floor_violations"] == 1
    assert out.blocking_issues == []


def test_exploration_depth(render_value_units):
    events = make_events(150) + make_events(4, event_type="template_browsed") + make_events(2, event_type="noise")
    snap = snapshot(exploration={"enabled": True, "qualifying_events": ["template_browsed"]})

    out = run_simulation(snap, render_value_units, events, _params(include_exploration_in_results=True))
    assert out.lens_metrics["exploration_depth"] == 4
    assert out.exploration_summary == {"enabled": True, "exploration_depth": 4}

    out = run_simulation(snap, render_value_units, events, _params(include_exploration_in_results=False))
    assert out.lens_metrics["exploration_depth"] == 0
    assert out.exploration_summary == {"enabled": False, "exploration_depth": 0}


def test_baseline_summary_has_economics_shape(render_events, render_value_units):
    baseline = snapshot(
        config_version_id="cfg_baseline",
        pools=[
            {"pool_id": "pool_main", "value_unit_id": "vu_render", "included_quantity": 50},
            {"pool_id": "pool_ghost", "value_unit_id": "vu_missing", "included_quantity": 5},
        ],
        rails={"margin_floor": 0.99},
    )
    out = run_simulation(
        snapshot(), render_value_units, render_events, _params(segment_customer_count=2), baseline=baseline
    )
    base = out.baseline_summary

    assert base is not None
    assert set(base) == set(out.economics_summary)
    # overage 100 units * $2 * 2 customers
    assert base["revenue_billed_usd"] == 400
    assert base["cost_usd"] == 300
    assert base["margin"] == pytest.approx(0.25)
    # baseline problems never surface as candidate issues
    assert out.blocking_issues == []
    assert out.risks == []


def test_baseline_can_use_its_own_value_units(render_events, render_value_units):
    out = run_simulation(
        snapshot(),
        render_value_units,
        render_events,
        _params(),
        baseline=snapshot(config_version_id="cfg_baseline"),
        baseline_value_units=[value_unit(cost=0.5, price=4.0)],
    )
    assert out.baseline_summary["revenue_billed_usd"] == 200
    assert out.baseline_summary["cost_usd"] == 75


def test_output_shape(render_events, render_value_units):
    out = run_simulation(snapshot(), render_value_units, render_events, _params()).to_dict()

    assert set(out) == {
        "lens_metrics",
        "economics_summary",
        "pool_breakdown",
        "exploration_summary",
        "risks",
        "blocking_issues",
        "baseline_summary",
    }
    assert set(out["economics_summary"]["assumptions"]) == {
        "segment_customer_count",
        "annual_churn_rate",
        "monthly_churn_rate",
        "annualization_factor",
        "churn_horizon_months",
    }
    assert out["baseline_summary"] is None
    assert out["pool_breakdown"][0]["pricing_mode_used"] == "use_unit_economics"


def test_deterministic(render_events, render_value_units):
    a = run_simulation(snapshot(), render_value_units, render_events, _params()).to_dict()
    b = run_simulation(snapshot(), render_value_units, render_events, _params()).to_dict()
    assert a == b
