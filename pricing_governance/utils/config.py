# pricing_governance/utils/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(key)
    return v if v is not None and v != "" else default


@dataclass(frozen=True)
class ProjectPaths:
    root: Path
    data_dir: Path
    seed_dir: Path
    reports_dir: Path


def get_project_root() -> Path:
    """
    Resolve repo root robustly.
    Assumes this file lives at: <root>/pricing_governance/utils/config.py
    """
    return Path(__file__).resolve().parents[2]


def get_paths() -> ProjectPaths:
    root = get_project_root()
    data_dir = root / "data"
    return ProjectPaths(
        root=root,
        data_dir=data_dir,
        seed_dir=data_dir / "seed",
        reports_dir=root / "reports",
    )


@dataclass(frozen=True)
class UsageFeedConfig:
    local_path: Path
    s3_uri: Optional[str]
    aws_region: Optional[str]

    @property
    def s3_enabled(self) -> bool:
        return self.s3_uri is not None


def get_usage_feed_config() -> UsageFeedConfig:
    """
    Where the historical usage event feed lives.

    Env:
      USAGE_EVENTS_PATH    (default: <root>/data/seed/usage_events.json)
      USAGE_EVENTS_S3_URI  (optional, s3://bucket/key; fetched when the local file is missing)
      AWS_REGION / AWS_DEFAULT_REGION (optional)
    """
    default_path = get_paths().seed_dir / "usage_events.json"
    return UsageFeedConfig(
        local_path=Path(_env("USAGE_EVENTS_PATH", str(default_path)) or str(default_path)),
        s3_uri=_env("USAGE_EVENTS_S3_URI", None),
        aws_region=_env("AWS_REGION", None) or _env("AWS_DEFAULT_REGION", None),
    )


def get_log_level() -> str:
    return (_env("LOG_LEVEL", "INFO") or "INFO").upper()
