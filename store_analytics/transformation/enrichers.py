"""
Sales Enrichment Module

Adds derived per-row attributes to cleaned store-sales data:
- Average order value (AOV)
- Store age in days and lifecycle bucket
- Revenue per capita of the store's region

Also exposes the two views the analytics stages read from:
core rows for KPIs and anomaly rows for the data-quality board.
"""

from typing import Optional

import polars as pl
import structlog

from store_analytics.analytics.stats import safe_ratio
from store_analytics.config import LifecycleSettings, get_settings

logger = structlog.get_logger(__name__)


class SalesEnricher:
    """
    Enricher for cleaned daily store-sales rows.

    Example:
        enricher = SalesEnricher()
        enriched = enricher.enrich(cleaning_result.deduplicated)
    """

    def __init__(self, settings: Optional[LifecycleSettings] = None):
        self.settings = settings or get_settings().lifecycle

    def age_bucket_expr(self, days: pl.Expr) -> pl.Expr:
        """Map a (possibly negative) day difference onto the lifecycle labels"""
        bounds = self.settings.age_bucket_bounds
        labels = self.settings.age_bucket_labels

        expr = pl.when(days.is_null()).then(pl.lit(None, dtype=pl.Utf8))
        for bound, label in zip(bounds, labels):
            expr = expr.when(days < bound).then(pl.lit(label))
        return expr.otherwise(pl.lit(labels[-1]))

    def add_aov(self, df: pl.DataFrame) -> pl.DataFrame:
        """AOV = revenue / transactions, null when there are no transactions"""
        return df.with_columns(safe_ratio("revenue", "transactions").alias("aov"))

    def add_store_age(self, df: pl.DataFrame) -> pl.DataFrame:
        """Store age in days (floored at 0) and its lifecycle bucket"""
        days_open = (pl.col("date") - pl.col("opening_date")).dt.total_days()

        return df.with_columns([
            days_open.clip(lower_bound=0).alias("store_age_days"),
            self.age_bucket_expr(days_open).alias("store_age_bucket"),
        ])

    def add_revenue_per_capita(self, df: pl.DataFrame) -> pl.DataFrame:
        """Revenue per resident, null for regions without population"""
        return df.with_columns(
            safe_ratio("revenue", "population").alias("revenue_per_capita")
        )

    def enrich(self, df: pl.DataFrame) -> pl.DataFrame:
        """Apply every enrichment"""
        df = self.add_aov(df)
        df = self.add_store_age(df)
        df = self.add_revenue_per_capita(df)

        logger.debug(f"Enriched {len(df)} rows")
        return df


def clean_alltime(enriched: pl.DataFrame) -> pl.DataFrame:
    """Rows that feed every KPI"""
    return enriched.filter(pl.col("keep_core") == 1)


def anomalies_view(enriched: pl.DataFrame) -> pl.DataFrame:
    """Excluded rows plus retained returns days"""
    return enriched.filter(
        (pl.col("keep_core") == 0) | (pl.col("flag_rev_nonpos_txpos") == 1)
    )


def enrich_sales(
    df: pl.DataFrame,
    settings: Optional[LifecycleSettings] = None,
) -> pl.DataFrame:
    """
    Convenience function to enrich cleaned sales rows.

    Args:
        df: Deduplicated sales rows with dimension attributes
        settings: Lifecycle bucket override

    Returns:
        Enriched DataFrame
    """
    return SalesEnricher(settings).enrich(df)
