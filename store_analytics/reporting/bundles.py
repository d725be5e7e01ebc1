"""
Report Bundles

JSON serialisation of the pipeline outputs for dashboard tooling.

Undefined numbers are written as ``null``; NaN and infinity are rejected
rather than written. Output is deterministic: the same payload always
produces the same bytes.
"""

import json
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import polars as pl
import structlog

from store_analytics.analytics.stats import RegressionStats

logger = structlog.get_logger(__name__)


def to_jsonable(value: Any) -> Any:
    """Recursively convert frames, dates and stats objects to JSON-ready values"""
    if isinstance(value, pl.DataFrame):
        return [to_jsonable(row) for row in value.to_dicts()]
    if isinstance(value, RegressionStats):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    return value


@dataclass(frozen=True)
class ReportBundle:
    """One named output document"""
    name: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"bundle": self.name, **to_jsonable(self.payload)}

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, allow_nan=False)


def write_bundles(bundles: Iterable[ReportBundle], output_dir: Union[str, Path]) -> Dict[str, str]:
    """
    Write each bundle to ``<output_dir>/<name>.json``.

    Returns:
        Mapping of bundle name to written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for bundle in bundles:
        path = output_dir / f"{bundle.name}.json"
        path.write_text(bundle.to_json() + "\n", encoding="utf-8")
        paths[bundle.name] = str(path)
        logger.info(f"Written bundle {bundle.name} to {path}")

    return paths
