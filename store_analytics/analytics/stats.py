"""
Statistical Helpers

Shared building blocks for the analytics stages:
- Continuous (linear interpolation) percentiles
- NTILE-style bucket assignment with a stable tie-break
- Null-propagating ratios
- Simple linear regression

Undefined results are always ``None`` / null, never 0 or NaN.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
import polars as pl
from scipy import stats

ROW_ORDER_COL = "_input_order"


@dataclass(frozen=True)
class RegressionStats:
    """Ordinary least squares fit of y on x"""
    n: int
    correlation: Optional[float]
    slope: Optional[float]
    intercept: Optional[float]

    def to_dict(self) -> dict:
        return {
            "n": self.n,
            "correlation": self.correlation,
            "slope": self.slope,
            "intercept": self.intercept,
        }


def finite_or_none(value: Optional[float]) -> Optional[float]:
    """Map NaN/inf to None so undefined values never leak as numbers"""
    if value is None:
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def percentile_cont(values: Iterable[Optional[float]], q: float) -> Optional[float]:
    """
    Continuous percentile with linear interpolation between order statistics.

    Nulls are ignored; an empty input yields None.
    """
    clean = np.array([v for v in values if v is not None and not math.isnan(v)], dtype=float)
    if clean.size == 0:
        return None
    return float(np.percentile(clean, q * 100, method="linear"))


def quantile_cont(column: Union[str, pl.Expr], q: float) -> pl.Expr:
    """Polars expression for a continuous percentile (ignores nulls)"""
    expr = pl.col(column) if isinstance(column, str) else column
    return expr.quantile(q, interpolation="linear")


def safe_ratio(numerator: Union[str, pl.Expr], denominator: Union[str, pl.Expr]) -> pl.Expr:
    """numerator / denominator when denominator > 0, else null"""
    num = pl.col(numerator) if isinstance(numerator, str) else numerator
    den = pl.col(denominator) if isinstance(denominator, str) else denominator
    return pl.when(den > 0).then(num / den).otherwise(None)


def ntile_expr(buckets: int, partition_by: Optional[Sequence[str]] = None) -> pl.Expr:
    """
    NTILE bucket number (1..buckets) for each row given its current position.

    Rows must already be sorted in ranking order. The first ``n % buckets``
    buckets receive one extra row, matching SQL NTILE.
    """
    if buckets < 1:
        raise ValueError(f"buckets must be >= 1, got {buckets}")

    size = pl.len().cast(pl.Int64)
    position = pl.int_range(0, pl.len(), dtype=pl.Int64)
    if partition_by:
        size = size.over(partition_by)
        position = position.over(partition_by)

    base = size // buckets
    remainder = size % buckets
    large_rows = remainder * (base + 1)

    return (
        pl.when(position < large_rows)
        .then(position // (base + 1) + 1)
        .otherwise(remainder + (position - large_rows) // pl.max_horizontal(base, pl.lit(1)) + 1)
    )


def assign_ntile(
    df: pl.DataFrame,
    value_col: str,
    buckets: int,
    alias: str,
    partition_by: Optional[Sequence[str]] = None,
    descending: bool = True,
) -> pl.DataFrame:
    """
    Add an NTILE column ranking ``value_col`` within each partition.

    Sorting is stable, so ties keep the input order; nulls rank last.
    The returned frame preserves the input row order.
    """
    if df.is_empty():
        return df.with_columns(pl.lit(None, dtype=pl.Int64).alias(alias))

    ranked = (
        df.with_row_index(ROW_ORDER_COL)
        .sort(value_col, descending=descending, nulls_last=True, maintain_order=True)
        .with_columns(ntile_expr(buckets, partition_by).cast(pl.Int64).alias(alias))
        .sort(ROW_ORDER_COL)
        .drop(ROW_ORDER_COL)
    )
    return ranked


def clamp(expr: pl.Expr, limit: float) -> pl.Expr:
    """Clamp into [-limit, limit]; nulls become 0"""
    return expr.fill_null(0.0).clip(-limit, limit)


def logistic(expr: pl.Expr) -> pl.Expr:
    return 1.0 / (1.0 + (-expr).exp())


def linear_fit(x: Sequence[Optional[float]], y: Sequence[Optional[float]]) -> RegressionStats:
    """
    Fit y = slope * x + intercept over the pairs where both sides are defined.

    Fewer than two pairs, or constant x, leave slope and intercept undefined.
    Correlation is undefined when either side has zero variance.
    """
    pairs: List[tuple] = [
        (float(a), float(b))
        for a, b in zip(x, y)
        if finite_or_none(a) is not None and finite_or_none(b) is not None
    ]
    n = len(pairs)
    if n < 2:
        return RegressionStats(n=n, correlation=None, slope=None, intercept=None)

    xs = np.array([p[0] for p in pairs])
    ys = np.array([p[1] for p in pairs])
    if np.ptp(xs) == 0:
        return RegressionStats(n=n, correlation=None, slope=None, intercept=None)

    result = stats.linregress(xs, ys)
    correlation = finite_or_none(result.rvalue) if np.ptp(ys) > 0 else None

    return RegressionStats(
        n=n,
        correlation=correlation,
        slope=finite_or_none(result.slope),
        intercept=finite_or_none(result.intercept),
    )
