"""
KPI Aggregation Module

Network, region and store rollups over a trailing window of core sales rows.
Includes:
- Executive (network) totals and AOV
- Regional KPIs with per-capita revenue
- Store KPIs, gaps and z-scores versus regional peers
- Weekday seasonality, daily and weekly series
- Store league (quartiles within region)
- Lifecycle KPIs by store age bucket
- Income vs AOV regression across regions
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

import polars as pl
import structlog

from store_analytics.analytics.benchmarks import add_z_scores, region_peer_stats
from store_analytics.analytics.stats import RegressionStats, assign_ntile, linear_fit, safe_ratio
from store_analytics.config import LifecycleSettings, WindowSettings, get_settings

logger = structlog.get_logger(__name__)

LEAGUE_BUCKETS = 4


def rollup(df: pl.DataFrame, keys: List[str]) -> pl.DataFrame:
    """Sum revenue and transactions by ``keys`` and derive AOV"""
    return (
        df.group_by(keys)
        .agg([
            pl.col("revenue").sum().alias("revenue"),
            pl.col("transactions").sum().alias("transactions"),
        ])
        .with_columns(safe_ratio("revenue", "transactions").alias("aov"))
        .sort(keys, nulls_last=True)
    )


def resolve_reference_date(rows: pl.DataFrame, override: Optional[date] = None) -> Optional[date]:
    """Window end: the configured date, else the latest sales date"""
    if override is not None:
        return override
    if rows.is_empty():
        return None
    return rows["date"].max()


def trailing_window(
    rows: pl.DataFrame,
    window_days: int,
    reference_date: Optional[date],
) -> pl.DataFrame:
    """
    Core rows dated within the ``window_days`` days ending on ``reference_date``.

    Both ends are inclusive.
    """
    if reference_date is None:
        return rows.clear()
    start = reference_date - timedelta(days=window_days - 1)
    return rows.filter(
        (pl.col("keep_core") == 1)
        & pl.col("date").is_between(start, reference_date, closed="both")
    )


def store_window_aggregates(window: pl.DataFrame) -> pl.DataFrame:
    """Per-store revenue, transactions and AOV over the window"""
    return rollup(window, ["store_id", "region"]).sort("store_id")


class KPIAggregator:
    """
    Computes the core KPI bundle over a trailing window.

    Example:
        aggregator = KPIAggregator()
        window = aggregator.window(core_rows)
        bundle = aggregator.build(window, regions)
    """

    def __init__(
        self,
        settings: Optional[WindowSettings] = None,
        lifecycle: Optional[LifecycleSettings] = None,
    ):
        app_settings = get_settings()
        self.settings = settings or app_settings.window
        self.lifecycle = lifecycle or app_settings.lifecycle

    def window(self, core_rows: pl.DataFrame) -> Tuple[pl.DataFrame, Optional[date]]:
        """Select the trailing window and return it with its reference date"""
        reference_date = resolve_reference_date(core_rows, self.settings.reference_date)
        window = trailing_window(core_rows, self.settings.window_days, reference_date)

        logger.info(
            "Trailing window selected",
            reference_date=str(reference_date),
            window_days=self.settings.window_days,
            rows=len(window),
        )
        return window, reference_date

    def network_totals(self, window: pl.DataFrame) -> Dict[str, Any]:
        """Executive KPIs; undefined on an empty window"""
        if window.is_empty():
            return {"total_revenue": None, "total_transactions": None, "network_aov": None}

        total_revenue = window["revenue"].sum()
        total_transactions = window["transactions"].sum()
        return {
            "total_revenue": total_revenue,
            "total_transactions": total_transactions,
            "network_aov": total_revenue / total_transactions if total_transactions > 0 else None,
        }

    def region_kpis(self, window: pl.DataFrame) -> pl.DataFrame:
        """Regional totals, AOV and average daily revenue per capita"""
        per_capita = (
            window.group_by("region")
            .agg(pl.col("revenue_per_capita").mean().alias("avg_revenue_per_capita"))
        )
        return (
            rollup(window, ["region"])
            .join(per_capita, on="region", how="left")
            .sort("region")
        )

    def top_bottom_regions(self, region_kpis: pl.DataFrame) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Best and worst regions by AOV (undefined AOV ranks last)"""
        n = self.settings.top_regions
        top = region_kpis.sort(["aov", "region"], descending=[True, False], nulls_last=True).head(n)
        bottom = region_kpis.sort(["aov", "region"], descending=[False, False], nulls_last=True).head(n)
        return top, bottom

    def stores_vs_region(self, store_kpis: pl.DataFrame) -> pl.DataFrame:
        """Store gaps and z-scores against the mean of their region's stores"""
        return add_z_scores(store_kpis, region_peer_stats(store_kpis)).sort("store_id")

    def top_bottom_stores(self, stores_vs_region: pl.DataFrame) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Stores furthest above and below their regional peers on revenue"""
        n = self.settings.top_stores
        cols = ["store_id", "region", "revenue", "z_rev", "gap_rev"]
        top = (
            stores_vs_region.sort(["z_rev", "store_id"], descending=[True, False], nulls_last=True)
            .select(cols)
            .head(n)
        )
        bottom = (
            stores_vs_region.sort(["z_rev", "store_id"], descending=[False, False], nulls_last=True)
            .select(cols)
            .head(n)
        )
        return top, bottom

    def weekday_seasonality(self, window: pl.DataFrame) -> pl.DataFrame:
        """Network totals by ISO weekday (1 = Monday ... 7 = Sunday)"""
        return rollup(
            window.with_columns(pl.col("date").dt.weekday().alias("weekday")),
            ["weekday"],
        )

    def daily_trend(self, window: pl.DataFrame) -> pl.DataFrame:
        return rollup(window, ["date"])

    def weekly_trend(self, window: pl.DataFrame) -> pl.DataFrame:
        """Network totals by Monday-starting week"""
        return rollup(
            window.with_columns(pl.col("date").dt.truncate("1w").alias("week")),
            ["week"],
        )

    def store_league(self, store_kpis: pl.DataFrame) -> pl.DataFrame:
        """
        Quartiles within region by revenue, AOV and transactions.

        Quartile 1 is the top band. Ties keep store order, undefined AOV
        ranks last.
        """
        league = store_kpis.sort("store_id")
        for metric in ["revenue", "aov", "transactions"]:
            league = assign_ntile(
                league,
                metric,
                LEAGUE_BUCKETS,
                alias=f"quartile_by_{metric}",
                partition_by=["region"],
            )
        return league.sort(
            ["region", "quartile_by_revenue", "revenue", "store_id"],
            descending=[False, False, True, False],
        )

    def lifecycle_kpis(self, window: pl.DataFrame) -> pl.DataFrame:
        """Window totals per store age bucket, in lifecycle order"""
        labels = self.lifecycle.age_bucket_labels
        return (
            rollup(window, ["store_age_bucket"])
            .with_columns(
                pl.col("store_age_bucket")
                .replace_strict(labels, list(range(len(labels))), default=len(labels))
                .alias("_bucket_order")
            )
            .sort(["_bucket_order", "store_age_bucket"], nulls_last=True)
            .drop("_bucket_order")
        )

    def income_vs_aov(self, window: pl.DataFrame, regions: pl.DataFrame) -> RegressionStats:
        """
        Regress regional average AOV on regional average income.

        Regional AOV is the mean of the daily store AOVs in the window.
        """
        aov_by_region = (
            window.group_by("region")
            .agg(pl.col("aov").mean().alias("avg_aov"))
            .join(regions.select(["region", "avg_income"]), on="region", how="inner")
            .sort("region")
        )
        return linear_fit(aov_by_region["avg_income"].to_list(), aov_by_region["avg_aov"].to_list())

    def build(
        self,
        window: pl.DataFrame,
        regions: pl.DataFrame,
        reference_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Assemble the core KPI bundle.

        Args:
            window: Trailing window rows (already filtered to core rows)
            regions: Region dimension table
            reference_date: Window end, echoed in the bundle

        Returns:
            Dictionary of scalars, frames and regression stats
        """
        store_kpis = store_window_aggregates(window)
        region_kpis = self.region_kpis(window)
        vs_region = self.stores_vs_region(store_kpis)
        top_regions, bottom_regions = self.top_bottom_regions(region_kpis)
        top_stores, bottom_stores = self.top_bottom_stores(vs_region)

        return {
            "window": {
                "reference_date": reference_date,
                "window_days": self.settings.window_days,
                "rows": len(window),
            },
            "network": self.network_totals(window),
            "region_kpis": region_kpis,
            f"top{self.settings.top_regions}_regions_by_aov": top_regions,
            f"bottom{self.settings.top_regions}_regions_by_aov": bottom_regions,
            "store_kpis": vs_region,
            f"top{self.settings.top_stores}_stores_vs_region_rev": top_stores,
            f"bottom{self.settings.top_stores}_stores_vs_region_rev": bottom_stores,
            "weekday_seasonality": self.weekday_seasonality(window),
            "daily_trend": self.daily_trend(window),
            "weekly_trend": self.weekly_trend(window),
            "store_league": self.store_league(store_kpis),
            "lifecycle_kpis": self.lifecycle_kpis(window),
            "income_aov_regression": self.income_vs_aov(window, regions),
        }
