"""
Benchmark & Risk Scoring Module

Scores every store against its regional peers over the trailing window.
Implements:
- Region peer mean and population standard deviation per metric
- Store z-scores (undefined when the region has no dispersion)
- Store league: quartiles and deciles within region
- Weighted risk score on a 0..100 logistic scale
- Watchlist classification, region summary and region boards
"""

from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from store_analytics.analytics.stats import assign_ntile, clamp, logistic, quantile_cont
from store_analytics.config import RiskSettings, get_settings

logger = structlog.get_logger(__name__)

# metric column -> short suffix used in z/gap column names
PEER_METRICS = {
    "revenue": "rev",
    "transactions": "tx",
    "aov": "aov",
}


def region_peer_stats(store_aggs: pl.DataFrame) -> pl.DataFrame:
    """
    Mean and population standard deviation of each store metric per region.

    Undefined store values (e.g. AOV without transactions) are ignored.
    """
    aggs = [pl.len().alias("peer_stores")]
    for metric in PEER_METRICS:
        aggs.append(pl.col(metric).mean().alias(f"mean_{metric}"))
        aggs.append(pl.col(metric).std(ddof=0).alias(f"std_{metric}"))

    return store_aggs.group_by("region").agg(aggs).sort("region")


def add_z_scores(store_aggs: pl.DataFrame, peer_stats: pl.DataFrame) -> pl.DataFrame:
    """
    Attach gap-to-mean and z-score columns for every peer metric.

    z is null, not 0, when the region's standard deviation is 0 or undefined.
    """
    exprs = []
    for metric, suffix in PEER_METRICS.items():
        value = pl.col(metric)
        mean = pl.col(f"mean_{metric}")
        std = pl.col(f"std_{metric}")
        exprs.append((value - mean).alias(f"gap_{suffix}"))
        exprs.append(
            pl.when(std > 0).then((value - mean) / std).otherwise(None).alias(f"z_{suffix}")
        )

    return (
        store_aggs.join(peer_stats, on="region", how="left")
        .with_columns(exprs)
        .sort("store_id")
    )


class RiskScorer:
    """
    Risk scorer for store window aggregates.

    Example:
        scorer = RiskScorer()
        scored = scorer.score(store_aggs)
        summary = scorer.region_summary(scored)
    """

    def __init__(self, settings: Optional[RiskSettings] = None):
        self.settings = settings or get_settings().risk

    def assign_leagues(self, store_aggs: pl.DataFrame) -> pl.DataFrame:
        """Revenue quartile and decile, AOV and transactions quartile within region"""
        league = store_aggs.sort("store_id")
        for metric, buckets, alias in [
            ("revenue", 4, "q_rev_in_region"),
            ("revenue", 10, "d_rev_in_region"),
            ("aov", 4, "q_aov_in_region"),
            ("transactions", 4, "q_tx_in_region"),
        ]:
            league = assign_ntile(league, metric, buckets, alias=alias, partition_by=["region"])
        return league

    def risk_score_expr(self) -> pl.Expr:
        """raw_risk mapped through the logistic curve onto 0..100"""
        return (100 * logistic(pl.col("raw_risk"))).round(1)

    def score(self, store_aggs: pl.DataFrame) -> pl.DataFrame:
        """
        Compute z-scores, risk score and watchlist membership per store.

        Scoring uses z-scores clamped to ``±z_clamp`` with undefined values
        counted as 0. The broad-weakness watchlist branch reads the raw
        (unclamped) z-scores instead.
        """
        s = self.settings
        scored = add_z_scores(self.assign_leagues(store_aggs), region_peer_stats(store_aggs))

        scored = scored.with_columns([
            clamp(pl.col("z_rev"), s.z_clamp).alias("z_rev_c"),
            clamp(pl.col("z_tx"), s.z_clamp).alias("z_tx_c"),
            clamp(pl.col("z_aov"), s.z_clamp).alias("z_aov_c"),
        ]).with_columns(
            (
                s.weight_revenue * -pl.col("z_rev_c")
                + s.weight_transactions * -pl.col("z_tx_c")
                + s.weight_aov * -pl.col("z_aov_c")
            ).alias("raw_risk")
        ).with_columns(
            self.risk_score_expr().alias("risk_score")
        )

        bottom_and_risky = (
            (pl.col("risk_score") >= s.score_threshold)
            & (pl.col("q_rev_in_region") == s.watchlist_quartile)
        )
        broad_weakness = (
            (pl.col("z_tx").fill_null(0.0) < s.weakness_z_threshold)
            & (pl.col("z_aov").fill_null(0.0) < s.weakness_z_threshold)
        )
        scored = scored.with_columns(
            (bottom_and_risky | broad_weakness).fill_null(False).alias("is_watchlist")
        )

        logger.info(
            "Risk scoring complete",
            stores=len(scored),
            watchlist=int(scored["is_watchlist"].sum()) if len(scored) else 0,
        )
        return scored

    def store_table(self, scored: pl.DataFrame) -> pl.DataFrame:
        """Per-store league, z-scores and risk, riskiest first within region"""
        return scored.select([
            "region", "store_id", "revenue", "transactions", "aov",
            "q_rev_in_region", "d_rev_in_region", "q_tx_in_region", "q_aov_in_region",
            "z_rev", "z_tx", "z_aov", "raw_risk", "risk_score", "is_watchlist",
        ]).sort(
            ["region", "risk_score", "revenue", "store_id"],
            descending=[False, True, False, False],
            nulls_last=True,
        )

    def region_summary(self, scored: pl.DataFrame) -> pl.DataFrame:
        """
        Watchlist share and revenue dispersion per region.

        ``dispersion_ratio`` = p90 / p10 of store revenue, undefined when p10 is 0.
        """
        return (
            scored.group_by("region")
            .agg([
                pl.len().alias("stores"),
                pl.col("risk_score").mean().alias("avg_risk_score"),
                pl.col("is_watchlist").cast(pl.Int64).sum().alias("at_risk_cnt"),
                quantile_cont("revenue", 0.1).alias("p10_rev"),
                quantile_cont("revenue", 0.9).alias("p90_rev"),
            ])
            .with_columns([
                (100.0 * pl.col("at_risk_cnt") / pl.col("stores")).alias("at_risk_pct"),
                pl.when(pl.col("p10_rev") != 0)
                .then(pl.col("p90_rev") / pl.col("p10_rev"))
                .otherwise(None)
                .alias("dispersion_ratio"),
            ])
            .select([
                "region", "stores", "avg_risk_score", "at_risk_cnt", "at_risk_pct",
                "p10_rev", "p90_rev", "dispersion_ratio",
            ])
            .sort(["at_risk_pct", "region"], descending=[True, False])
        )

    def region_boards(self, scored: pl.DataFrame) -> List[Dict[str, Any]]:
        """Per region: revenue leaders and highest-risk stores"""
        n = self.settings.board_size
        boards = []
        for region in sorted(scored["region"].unique().to_list()):
            peers = scored.filter(pl.col("region") == region)
            leaders = (
                peers.sort(["revenue", "store_id"], descending=[True, False])
                .select(["store_id", "revenue", "transactions", "aov", "risk_score"])
                .head(n)
            )
            watchlist = (
                peers.sort(["risk_score", "store_id"], descending=[True, False])
                .select([
                    "store_id", "revenue", "transactions", "aov", "risk_score",
                    "q_rev_in_region", "z_rev", "z_tx", "z_aov", "is_watchlist",
                ])
                .head(n)
            )
            boards.append({
                "region": region,
                f"top{n}_leaders": leaders,
                f"top{n}_watchlist": watchlist,
            })
        return boards

    def build(self, store_aggs: pl.DataFrame) -> Dict[str, Any]:
        """
        Assemble the league and risk bundle.

        Args:
            store_aggs: Store window aggregates (store_id, region, revenue,
                transactions, aov)
        """
        scored = self.score(store_aggs)
        return {
            "store_league_risk": self.store_table(scored),
            "region_risk_summary": self.region_summary(scored),
            "region_boards": self.region_boards(scored),
        }


def score_stores(
    store_aggs: pl.DataFrame,
    settings: Optional[RiskSettings] = None,
) -> pl.DataFrame:
    """Convenience function returning the scored store frame"""
    return RiskScorer(settings).score(store_aggs)
