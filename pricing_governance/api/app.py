# pricing_governance/api/app.py
"""
FastAPI service for pricing config governance (thin API wrapper).

Endpoints:
- GET  /health
- POST /simulations               -> simulation run record (output + completeness)
- POST /approvals                 -> decision record + billing patch
- POST /configs/baseline-options  -> sibling configs usable as a baseline

The API layer stays thin:
- validates input shape
- calls pricing_governance.simulation.service / pricing_governance.approval
- maps caller errors (ValueError subclasses) to HTTP 400
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from pricing_governance.approval.workflow import ApprovalError, approve, baseline_options
from pricing_governance.pricing.config import ConfigVersion, PricingCycle
from pricing_governance.simulation.service import SimulationRequestError, simulate_from_request
from pricing_governance.utils.config import get_log_level

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pricing Config Governance", version="0.1.0")


# -----------------------------
# Schemas
# -----------------------------
class SimulationFiltersInput(BaseModel):
    workspace_id: Optional[str] = None
    segment: Optional[str] = None
    stage: Optional[str] = None
    target_environment: Optional[str] = None


class SimulationRequestBody(BaseModel):
    # Config versions + value unit definitions, as stored (JSON blobs or objects)
    candidate: Dict[str, Any]
    candidate_value_units: List[Dict[str, Any]] = Field(default_factory=list)
    baseline: Optional[Dict[str, Any]] = None
    baseline_config_version_id: Optional[str] = None
    baseline_value_units: Optional[List[Dict[str, Any]]] = None

    historical_window_days: float
    filters: SimulationFiltersInput

    # Enum values are checked by the service so error messages stay uniform
    pricing_mode: Optional[str] = None
    include_exploration_in_results: Optional[bool] = None
    segment_customer_count: Optional[float] = None
    annual_churn_rate: Optional[float] = None
    churn_horizon_months: Optional[int] = None
    pool_pricing_mode_overrides: Optional[Dict[str, str]] = None
    commit_semantics: Optional[str] = None
    pool_commit_semantics_overrides: Optional[Dict[str, str]] = None

    # Optional inline data (otherwise the configured usage feed is used)
    customers: Optional[List[Dict[str, Any]]] = None
    events: Optional[List[Dict[str, Any]]] = None


class SimulationRunResponse(BaseModel):
    simulation_run_id: str
    candidate_config_version_id: str
    baseline_config_version_id: Optional[str] = None
    input: Dict[str, Any]
    output: Dict[str, Any]
    completeness_result: str


class ApprovalRequestBody(BaseModel):
    candidate: Dict[str, Any]
    cycle: Dict[str, Any]
    simulation_run: Dict[str, Any]
    configs: List[Dict[str, Any]] = Field(default_factory=list)

    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    rationale: Optional[str] = None
    effective_at: Optional[str] = None


class BaselineOptionsBody(BaseModel):
    candidate: Dict[str, Any]
    configs: List[Dict[str, Any]] = Field(default_factory=list)


# -----------------------------
# Routes
# -----------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/simulations", response_model=SimulationRunResponse)
def simulations(req: SimulationRequestBody) -> SimulationRunResponse:
    payload = req.model_dump(exclude_none=True)
    payload["filters"] = req.filters.model_dump()
    try:
        out = simulate_from_request(payload)
    except SimulationRequestError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return SimulationRunResponse(**out)


@app.post("/approvals")
def approvals(req: ApprovalRequestBody) -> Dict[str, Any]:
    try:
        candidate = ConfigVersion.from_dict(req.candidate)
        cycle = PricingCycle.from_dict(req.cycle)
        configs = [ConfigVersion.from_dict(c) for c in req.configs]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid config payload: {e}") from e

    try:
        result = approve(
            candidate,
            cycle,
            req.simulation_run,
            req.model_dump(include={"approver_name", "approver_role", "rationale"}),
            configs=configs,
            effective_at=req.effective_at,
        )
    except ApprovalError as e:
        logger.warning("Approval refused for %s: %s", candidate.config_version_id, e)
        raise HTTPException(status_code=400, detail=str(e)) from e
    return result.to_dict()


@app.post("/configs/baseline-options")
def configs_baseline_options(req: BaselineOptionsBody) -> Dict[str, Any]:
    try:
        candidate = ConfigVersion.from_dict(req.candidate)
        configs = [ConfigVersion.from_dict(c) for c in req.configs]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid config payload: {e}") from e
    return {"items": baseline_options(candidate, configs)}
