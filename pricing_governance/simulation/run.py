# pricing_governance/simulation/run.py
"""
Run a pricing simulation from a request file.

Inputs:
- a JSON request (same body as POST /simulations)
- the usage event feed: --events path, inline "events" in the request,
  or USAGE_EVENTS_PATH / USAGE_EVENTS_S3_URI

Outputs:
- simulation run record (JSON): reports/simulation_run.json by default

Usage:
  python -m pricing_governance.simulation.run --request data/seed/simulation_request.json
  python -m pricing_governance.simulation.run --request req.json --events data/seed/usage_events.csv --out out.json
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from pricing_governance.simulation.service import simulate_from_request
from pricing_governance.utils.config import get_log_level, get_paths
from pricing_governance.utils.io import read_json, write_json


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="pricing-simulate")
    parser.add_argument("--request", required=True, help="Path to simulation request JSON")
    parser.add_argument("--events", default=None, help="Usage events file (.json/.csv/.parquet)")
    parser.add_argument("--out", default=None, help="Where to write the run record JSON")
    args = parser.parse_args(argv)

    logging.basicConfig(level=get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    payload = read_json(args.request)
    record = simulate_from_request(payload, events_path=args.events)

    out_path = Path(args.out) if args.out else get_paths().reports_dir / "simulation_run.json"
    write_json(record, out_path)

    summary = record["output"]["economics_summary"]
    margin = summary["margin"]
    print(f"[OK] Simulation run saved: {out_path}")
    print(
        f"Revenue=${summary['revenue_billed_usd']:.2f} | Cost=${summary['cost_usd']:.2f} | "
        f"Margin={'n/a' if margin is None else f'{margin:.3f}'} | Completeness={record['completeness_result']}"
    )
    for issue in record["output"]["blocking_issues"]:
        print(f"[BLOCKING] {issue}")
    for risk in record["output"]["risks"]:
        print(f"[RISK] {risk}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
