"""
Regional Factors Module

Deep-dive on regional drivers over the trailing window:
- Region aggregates with per-capita revenue
- Income quintiles and population terciles across regions
- Income vs AOV regression on regional AOV
- Revenue gap decomposition versus network averages
"""

from typing import Any, Dict

import polars as pl
import structlog

from store_analytics.analytics.stats import assign_ntile, linear_fit, safe_ratio

logger = structlog.get_logger(__name__)


class RegionalFactorAnalyzer:
    """
    Regional driver analysis.

    Example:
        analyzer = RegionalFactorAnalyzer()
        bundle = analyzer.build(window)
    """

    def region_aggregates(self, window: pl.DataFrame) -> pl.DataFrame:
        """Window totals per region with its population and income"""
        return (
            window.group_by("region")
            .agg([
                pl.col("revenue").sum().alias("revenue"),
                pl.col("transactions").sum().alias("transactions"),
                pl.col("population").mean().alias("population"),
                pl.col("avg_income").mean().alias("avg_income"),
            ])
            .with_columns([
                safe_ratio("revenue", "transactions").alias("aov"),
                safe_ratio("revenue", "population").alias("revenue_per_capita"),
            ])
            .sort("region")
        )

    def with_bins(self, region_agg: pl.DataFrame) -> pl.DataFrame:
        """Income quintile (1 = poorest) and population tercile (1 = smallest)"""
        binned = assign_ntile(region_agg, "avg_income", 5, alias="income_quintile", descending=False)
        return assign_ntile(binned, "population", 3, alias="population_tercile", descending=False)

    def revenue_decomposition(self, region_agg: pl.DataFrame) -> pl.DataFrame:
        """
        Split each region's deviation from network averages into an AOV part,
        a transactions part and their cross term.
        """
        if region_agg.is_empty():
            return region_agg

        net_revenue = region_agg["revenue"].sum()
        net_transactions = region_agg["transactions"].sum()
        net_aov = net_revenue / net_transactions if net_transactions > 0 else None
        regions = len(region_agg)

        aov_delta = pl.col("aov") - pl.lit(net_aov, dtype=pl.Float64)
        tx_delta = pl.col("transactions") - net_transactions

        return (
            region_agg.select(["region", "revenue", "transactions", "aov"])
            .with_columns([
                pl.lit(net_revenue, dtype=pl.Float64).alias("net_revenue"),
                pl.lit(net_transactions, dtype=pl.Int64).alias("net_transactions"),
                pl.lit(net_aov, dtype=pl.Float64).alias("net_aov"),
                (pl.col("revenue") - net_revenue / regions).alias("gap_vs_equal_share"),
                (aov_delta * net_transactions).alias("aov_component"),
                (tx_delta * pl.lit(net_aov, dtype=pl.Float64)).alias("tx_component"),
                (aov_delta * tx_delta).alias("cross_component"),
            ])
            .with_columns(
                (pl.col("aov_component") + pl.col("tx_component") + pl.col("cross_component"))
                .alias("_total_component")
            )
            .sort(["_total_component", "region"], descending=[True, False], nulls_last=True)
            .drop("_total_component")
        )

    def bin_summary(self, binned: pl.DataFrame, bin_col: str, level_col: str) -> pl.DataFrame:
        """Average region metrics per bin"""
        return (
            binned.group_by(bin_col)
            .agg([
                pl.len().alias("regions_in_bin"),
                pl.col(level_col).mean().alias(f"bin_avg_{level_col}"),
                pl.col("aov").mean().alias("bin_avg_aov"),
                pl.col("revenue").mean().alias("bin_avg_revenue"),
                pl.col("transactions").mean().alias("bin_avg_transactions"),
                pl.col("revenue_per_capita").mean().alias("bin_avg_revenue_per_capita"),
            ])
            .sort(bin_col)
        )

    def build(self, window: pl.DataFrame) -> Dict[str, Any]:
        """Assemble the regional factors bundle"""
        region_agg = self.region_aggregates(window)
        binned = self.with_bins(region_agg)
        regression = linear_fit(binned["avg_income"].to_list(), binned["aov"].to_list())

        logger.info("Regional factors computed", regions=len(region_agg), regression_n=regression.n)

        return {
            "regions_percap_incomebins": binned.sort(
                ["aov", "region"], descending=[True, False], nulls_last=True
            ),
            "income_aov_regression": regression,
            "regional_revenue_decomposition": self.revenue_decomposition(region_agg),
            "income_quintile_summary": self.bin_summary(binned, "income_quintile", "avg_income"),
            "population_tercile_summary": self.bin_summary(binned, "population_tercile", "population"),
        }
