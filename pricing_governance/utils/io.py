from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

import pandas as pd


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_json(path: Union[str, Path]) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(obj: Any, path: Path) -> None:
    ensure_dir(path.parent)

    if hasattr(obj, "to_dict"):
        payload = obj.to_dict()
    elif is_dataclass(obj):
        payload = asdict(obj)
    else:
        payload = obj

    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def read_df(path: Union[str, Path], dtype: Optional[Dict[str, Any]] = None) -> pd.DataFrame:
    """dtype only applies to CSV; parquet and JSON carry their own column types."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suf = path.suffix.lower()
    if suf == ".csv":
        return pd.read_csv(path, dtype=dtype)
    if suf == ".parquet":
        return pd.read_parquet(path)
    if suf == ".json":
        return pd.read_json(path, orient="records")
    raise ValueError(f"Unsupported dataframe format: {suf}")


# ---------------------------
# Optional S3 support
# ---------------------------
def parse_s3_uri(uri: str) -> tuple[str, str]:
    p = urlparse(uri)
    if p.scheme != "s3" or not p.netloc:
        raise ValueError(f"Expected s3://bucket/key, got: {uri}")
    return p.netloc, p.path.lstrip("/")


def _boto3_client(service: str, region: Optional[str] = None):
    try:
        import boto3  # type: ignore
    except ImportError as e:
        raise ImportError(
            "boto3 is required for S3 operations. Install with: pip install boto3"
        ) from e
    return boto3.client(service, region_name=region) if region else boto3.client(service)


def s3_download_file(
    bucket: str, key: str, local_path: Path, region: Optional[str] = None
) -> None:
    local_path = Path(local_path)
    ensure_dir(local_path.parent)
    s3 = _boto3_client("s3", region=region)
    s3.download_file(bucket, key, str(local_path))
