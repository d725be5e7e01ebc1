"""
Store Lifecycle Module

Cohort ramp-up and time-to-benchmark analysis on core sales rows.
Includes:
- Store weeks: revenue, transactions and AOV per whole week since opening
- Ramp curves by opening-month cohort and by region
- Network benchmarks (median store AOV and transactions over the window)
- Time to benchmark per store with region and cohort summaries

Ramp points backed by few stores (``stores_active``) are statistically weak;
newer cohorts contribute fewer weeks.
"""

from typing import Any, Dict, Optional

import polars as pl
import structlog

from store_analytics.analytics.stats import percentile_cont, quantile_cont, safe_ratio
from store_analytics.config import LifecycleSettings, get_settings

logger = structlog.get_logger(__name__)


class CohortAnalyzer:
    """
    Ramp-up analyzer for stores tracked by weeks since opening.

    Example:
        analyzer = CohortAnalyzer()
        weeks = analyzer.store_weeks(core_rows)
        benchmarks = analyzer.network_benchmarks(store_aggs)
        ttb = analyzer.time_to_benchmark(weeks, benchmarks)
    """

    def __init__(self, settings: Optional[LifecycleSettings] = None):
        self.settings = settings or get_settings().lifecycle

    def store_weeks(self, core_rows: pl.DataFrame) -> pl.DataFrame:
        """
        Aggregate rows on/after opening into (store, weeks_since_open).

        ``weeks_since_open`` = floor(days since opening / 7).
        """
        days_open = (pl.col("date") - pl.col("opening_date")).dt.total_days()

        return (
            core_rows.filter(
                pl.col("date").is_not_null()
                & pl.col("opening_date").is_not_null()
                & (pl.col("date") >= pl.col("opening_date"))
            )
            .with_columns([
                (days_open // 7).alias("weeks_since_open"),
                pl.col("opening_date").dt.truncate("1mo").alias("cohort_month"),
            ])
            .group_by(["store_id", "region", "cohort_month", "weeks_since_open"])
            .agg([
                pl.col("revenue").sum().alias("week_revenue"),
                pl.col("transactions").sum().alias("week_transactions"),
            ])
            .with_columns(safe_ratio("week_revenue", "week_transactions").alias("week_aov"))
            .sort(["store_id", "weeks_since_open"])
        )

    def ramp_curve(self, store_weeks: pl.DataFrame, key: str) -> pl.DataFrame:
        """Average weekly metrics by (key, weeks_since_open) with contributing store count"""
        return (
            store_weeks.group_by([key, "weeks_since_open"])
            .agg([
                pl.col("week_revenue").mean().alias("avg_week_revenue"),
                pl.col("week_transactions").mean().alias("avg_week_transactions"),
                pl.col("week_aov").mean().alias("avg_week_aov"),
                pl.col("store_id").n_unique().alias("stores_active"),
            ])
            .sort([key, "weeks_since_open"])
        )

    def network_benchmarks(self, store_aggs: pl.DataFrame) -> Dict[str, Optional[float]]:
        """Median store AOV and median store transactions over the trailing window"""
        return {
            "median_aov_store": percentile_cont(store_aggs["aov"].to_list(), 0.5),
            "median_transactions_store": percentile_cont(
                store_aggs["transactions"].cast(pl.Float64).to_list(), 0.5
            ),
        }

    def time_to_benchmark(
        self,
        store_weeks: pl.DataFrame,
        benchmarks: Dict[str, Optional[float]],
    ) -> pl.DataFrame:
        """
        First week offset at which a store meets both benchmarks.

        A week counts only when AOV and transactions reach their benchmark in
        the same week. Stores that never get there have a null result.
        """
        stores = (
            store_weeks.select(["store_id", "region", "cohort_month"])
            .unique(subset=["store_id"], keep="first", maintain_order=True)
        )

        bench_aov = benchmarks.get("median_aov_store")
        bench_tx = benchmarks.get("median_transactions_store")
        if bench_aov is None or bench_tx is None:
            logger.warning("Network benchmarks undefined; no store can reach them")
            return stores.with_columns(
                pl.lit(None, dtype=pl.Int64).alias("weeks_to_benchmark")
            ).sort("store_id")

        first_hit = (
            store_weeks.filter(
                pl.col("week_aov").is_not_null()
                & (pl.col("week_aov") >= bench_aov)
                & (pl.col("week_transactions") >= bench_tx)
            )
            .group_by("store_id")
            .agg(pl.col("weeks_since_open").min().alias("weeks_to_benchmark"))
        )

        return (
            stores.join(first_hit, on="store_id", how="left")
            .sort(["weeks_to_benchmark", "store_id"], nulls_last=True)
        )

    def ttb_summary(self, ttb: pl.DataFrame, key: str) -> pl.DataFrame:
        """Hit count, total and distribution of time to benchmark per ``key``"""
        upper = self.settings.ttb_upper_percentile
        weeks = pl.col("weeks_to_benchmark")

        return (
            ttb.group_by(key)
            .agg([
                weeks.is_not_null().sum().alias("stores_hit_bench"),
                pl.len().alias("stores_total"),
                weeks.mean().alias("avg_weeks_to_bench"),
                quantile_cont(weeks, 0.5).alias("p50_weeks_to_bench"),
                quantile_cont(weeks, upper).alias(f"p{round(upper * 100)}_weeks_to_bench"),
            ])
            .sort(key)
        )

    def build(self, core_rows: pl.DataFrame, store_aggs: pl.DataFrame) -> Dict[str, Any]:
        """
        Assemble the store lifecycle bundle.

        Args:
            core_rows: All-time core rows (enriched, keep_core == 1)
            store_aggs: Store trailing-window aggregates for the benchmarks
        """
        weeks = self.store_weeks(core_rows)
        benchmarks = self.network_benchmarks(store_aggs)
        ttb = self.time_to_benchmark(weeks, benchmarks)

        logger.info(
            "Lifecycle analysis complete",
            store_weeks=len(weeks),
            stores=len(ttb),
            stores_hit=int(ttb["weeks_to_benchmark"].is_not_null().sum()),
        )

        return {
            "network_benchmarks": benchmarks,
            "cohort_ramp_curves": self.ramp_curve(weeks, "cohort_month"),
            "regional_ramp_curves": self.ramp_curve(weeks, "region"),
            "store_time_to_benchmark": ttb,
            "ttb_region_summary": self.ttb_summary(ttb, "region"),
            "ttb_cohort_summary": self.ttb_summary(ttb, "cohort_month"),
        }
