# pricing_governance/api/lambda_handler.py
"""
AWS Lambda handler for FastAPI using Mangum (ASGI adapter).

How it works:
- API Gateway invokes Lambda
- Mangum translates the event into an ASGI request
- FastAPI handles routing (/health, /simulations, /approvals, ...)
- Response is returned back to API Gateway

Event feed loading:
- With PRELOAD_USAGE_EVENTS=true (default) the usage feed is read at cold start
  and cached by the service layer. Requests carrying inline events skip it.
  If the feed lives in S3, set USAGE_EVENTS_S3_URI and USAGE_EVENTS_PATH (e.g. /tmp/usage_events.json).
"""

from __future__ import annotations

import os

from mangum import Mangum

from pricing_governance.api.app import app
from pricing_governance.simulation.service import get_usage_events


_PRELOAD_EVENTS = os.getenv("PRELOAD_USAGE_EVENTS", "true").lower() in {"1", "true", "yes"}

if _PRELOAD_EVENTS:
    get_usage_events()


handler = Mangum(app)
