# pricing_governance/usage/store.py
"""
Historical usage event feed.

The feed is an immutable list of event records (plain dicts):
  {"event_type": ..., "workspace_id": ..., "segment": ..., <numeric/string fields>}

Sources:
- JSON array (.json)
- CSV / parquet, one event per row (empty cells are dropped from the record)
- S3: if the local file is missing and an s3:// URI is configured, download it first
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from pricing_governance.utils.io import parse_s3_uri, read_df, read_json, s3_download_file

logger = logging.getLogger(__name__)

UsageEvent = Dict[str, Any]

# Matched against string filters; numeric-looking ids must stay strings.
IDENTITY_FIELDS = ("event_type", "workspace_id", "segment")


def ensure_events_downloaded(*, s3_uri: str, local_path: Union[str, Path], aws_region: Optional[str] = None) -> Path:
    """
    Ensure the event feed exists at local_path. If not, download from S3.
    Returns local_path.
    """
    lp = Path(local_path)
    if lp.exists() and lp.stat().st_size > 0:
        return lp

    bucket, key = parse_s3_uri(s3_uri)
    logger.info("Downloading usage events from s3://%s/%s", bucket, key)
    s3_download_file(bucket, key, lp, region=aws_region)
    return lp


def _records_from_df(df: pd.DataFrame) -> List[UsageEvent]:
    records: List[UsageEvent] = []
    for row in df.to_dict(orient="records"):
        rec = {k: v for k, v in row.items() if not (v is pd.NA or (isinstance(v, float) and pd.isna(v)))}
        for k in IDENTITY_FIELDS:
            if k in rec and not isinstance(rec[k], str):
                rec[k] = str(rec[k])
        records.append(rec)
    return records


def load_usage_events(path: Union[str, Path]) -> List[UsageEvent]:
    path = Path(path)
    if path.suffix.lower() == ".json":
        data = read_json(path)
        if not isinstance(data, list):
            raise ValueError(f"Usage event file must hold a JSON array: {path}")
        events = [e for e in data if isinstance(e, dict)]
    else:
        events = _records_from_df(read_df(path, dtype={k: str for k in IDENTITY_FIELDS}))

    logger.info("Loaded %d usage events from %s", len(events), path)
    return events
