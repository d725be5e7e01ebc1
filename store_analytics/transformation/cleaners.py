"""
Sales Cleaning Module

Cleaning transformations for the daily store-sales fact table.
Handles:
- Dimension join (orphan rows are dropped and counted)
- Anomaly flagging and core-row selection
- Winsorization of revenue per (region, date)
- Deduplication by (store_id, date)

Each step takes a frame and returns a new one; nothing is mutated in place.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import polars as pl
import structlog

from store_analytics.analytics.stats import quantile_cont
from store_analytics.config import CleaningSettings, get_settings
from store_analytics.ingestion.batch_loader import StoreDataset

logger = structlog.get_logger(__name__)

SOURCE_ROW_COL = "source_row"
CAP_ORDER_COL = "_cap_order"

FLAG_COLUMNS = [
    "flag_tx_negative",
    "flag_date_null",
    "flag_tx0_revpos",
    "flag_rev_nonpos_txpos",
]

# Flags that remove a row from the KPI base, in precedence order
EXCLUDING_FLAGS = [
    ("flag_tx_negative", "tx_negative"),
    ("flag_date_null", "date_null"),
    ("flag_tx0_revpos", "tx0_revpos"),
]


@dataclass
class CleaningStats:
    """Statistics from cleaning operations"""
    raw_rows: int
    orphan_rows: int
    joined_rows: int
    kept_rows: int
    excluded_rows: int
    capped_rows: int
    duplicate_groups: int
    duplicates_removed: int
    rows_after_cleaning: int
    flag_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "raw_rows": self.raw_rows,
            "orphan_rows": self.orphan_rows,
            "joined_rows": self.joined_rows,
            "kept_rows": self.kept_rows,
            "excluded_rows": self.excluded_rows,
            "capped_rows": self.capped_rows,
            "duplicate_groups": self.duplicate_groups,
            "duplicates_removed": self.duplicates_removed,
            "rows_after_cleaning": self.rows_after_cleaning,
            "flag_counts": dict(self.flag_counts),
        }


@dataclass(frozen=True)
class CleaningResult:
    """Snapshots of each cleaning stage"""
    flagged: pl.DataFrame
    thresholds: pl.DataFrame
    capped: pl.DataFrame
    deduplicated: pl.DataFrame
    stats: CleaningStats


class SalesCleaner:
    """
    Cleaner for the daily store-sales table.

    Example:
        cleaner = SalesCleaner()
        result = cleaner.clean(dataset)
        result.deduplicated  # one row per (store_id, date)
    """

    def __init__(self, settings: Optional[CleaningSettings] = None):
        self.settings = settings or get_settings().cleaning

    def join_dimensions(
        self,
        sales: pl.DataFrame,
        stores: pl.DataFrame,
        regions: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Attach store and region attributes to every sales row.

        Rows whose store or region is unknown are dropped here. Each kept row
        carries its position in the raw table as ``source_row``.
        """
        store_dim = (
            stores.select(["store_id", "region", "opening_date"])
            .unique(subset=["store_id"], keep="first", maintain_order=True)
        )
        region_dim = (
            regions.select(["region", "population", "avg_income"])
            .unique(subset=["region"], keep="first", maintain_order=True)
        )

        return (
            sales.with_row_index(SOURCE_ROW_COL)
            .join(store_dim, on="store_id", how="inner")
            .join(region_dim, on="region", how="inner")
            .sort(SOURCE_ROW_COL)
        )

    def flag_anomalies(self, df: pl.DataFrame) -> pl.DataFrame:
        """Add the four 0/1 anomaly flags"""
        tx = pl.col("transactions")
        revenue = pl.col("revenue")

        return df.with_columns([
            (tx < 0).fill_null(False).cast(pl.Int8).alias("flag_tx_negative"),
            pl.col("date").is_null().cast(pl.Int8).alias("flag_date_null"),
            ((tx == 0) & (revenue > 0)).fill_null(False).cast(pl.Int8).alias("flag_tx0_revpos"),
            ((tx > 0) & (revenue <= 0)).fill_null(False).cast(pl.Int8).alias("flag_rev_nonpos_txpos"),
        ])

    def mark_core_rows(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Decide ``keep_core`` and record the first excluding flag.

        Returns-day rows (``flag_rev_nonpos_txpos``) stay in the core.
        """
        reason = pl.lit(None, dtype=pl.Utf8)
        for flag, label in reversed(EXCLUDING_FLAGS):
            reason = pl.when(pl.col(flag) == 1).then(pl.lit(label)).otherwise(reason)

        return df.with_columns(reason.alias("exclusion_reason")).with_columns(
            pl.col("exclusion_reason").is_null().cast(pl.Int8).alias("keep_core")
        )

    def compute_revenue_thresholds(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Lower/upper revenue percentiles per (region, date).

        Percentiles are continuous (linear interpolation). A group without
        any revenue value gets null thresholds.
        """
        lower = self.settings.winsor_lower_pct
        upper = self.settings.winsor_upper_pct

        return (
            df.group_by(["region", "date"])
            .agg([
                quantile_cont("revenue", lower).alias("rev_lower"),
                quantile_cont("revenue", upper).alias("rev_upper"),
                pl.len().alias("group_rows"),
            ])
            .sort(["region", "date"], nulls_last=True)
        )

    def apply_revenue_caps(self, df: pl.DataFrame, thresholds: pl.DataFrame) -> pl.DataFrame:
        """
        Cap revenue into the thresholds of its (region, date) group.

        Rows without thresholds (including null dates) are left unchanged.
        Applying the same thresholds twice is a no-op.
        """
        revenue = pl.col("revenue")
        lower = pl.col("rev_lower")
        upper = pl.col("rev_upper")

        return (
            df.with_row_index(CAP_ORDER_COL)
            .join(
                thresholds.select(["region", "date", "rev_lower", "rev_upper"]),
                on=["region", "date"],
                how="left",
            )
            .with_columns(
                pl.when(lower.is_not_null() & (revenue < lower))
                .then(lower)
                .when(upper.is_not_null() & (revenue > upper))
                .then(upper)
                .otherwise(revenue)
                .alias("revenue")
            )
            .sort(CAP_ORDER_COL)
            .drop(["rev_lower", "rev_upper", CAP_ORDER_COL])
        )

    def deduplicate(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Keep one row per (store_id, date).

        The winner has the highest capped revenue, then the most
        transactions, then the earliest source row.
        """
        order_col = SOURCE_ROW_COL if SOURCE_ROW_COL in df.columns else None
        if order_col is None:
            df = df.with_row_index(SOURCE_ROW_COL)

        deduped = (
            df.sort(
                ["revenue", "transactions", SOURCE_ROW_COL],
                descending=[True, True, False],
                nulls_last=True,
                maintain_order=True,
            )
            .unique(subset=["store_id", "date"], keep="first", maintain_order=True)
            .sort(SOURCE_ROW_COL)
        )

        if order_col is None:
            deduped = deduped.drop(SOURCE_ROW_COL)
        return deduped

    def clean(self, dataset: StoreDataset) -> CleaningResult:
        """
        Run the full cleaning sequence.

        join → flag → keep_core → winsorize → deduplicate
        """
        raw_rows = len(dataset.sales)

        joined = self.join_dimensions(dataset.sales, dataset.stores, dataset.regions)
        orphan_rows = raw_rows - len(joined)
        if orphan_rows:
            logger.warning("Dropped sales rows without store/region", orphan_rows=orphan_rows)

        flagged = self.mark_core_rows(self.flag_anomalies(joined))
        thresholds = self.compute_revenue_thresholds(flagged)
        capped = self.apply_revenue_caps(flagged, thresholds)
        deduplicated = self.deduplicate(capped)

        duplicate_groups = (
            capped.group_by(["store_id", "date"])
            .agg(pl.len().alias("rows"))
            .filter(pl.col("rows") > 1)
            .height
        )
        capped_rows = int(
            capped["revenue"].ne_missing(flagged["revenue"]).sum()
        )
        kept_rows = int(flagged["keep_core"].sum()) if len(flagged) else 0

        stats = CleaningStats(
            raw_rows=raw_rows,
            orphan_rows=orphan_rows,
            joined_rows=len(joined),
            kept_rows=kept_rows,
            excluded_rows=len(flagged) - kept_rows,
            capped_rows=capped_rows,
            duplicate_groups=duplicate_groups,
            duplicates_removed=len(capped) - len(deduplicated),
            rows_after_cleaning=len(deduplicated),
            flag_counts={flag: int(flagged[flag].sum()) for flag in FLAG_COLUMNS},
        )

        logger.info(
            f"Cleaning complete: {raw_rows} raw -> {len(deduplicated)} rows",
            orphans=orphan_rows,
            excluded=stats.excluded_rows,
            capped=capped_rows,
            duplicates_removed=stats.duplicates_removed,
        )

        return CleaningResult(
            flagged=flagged,
            thresholds=thresholds,
            capped=capped,
            deduplicated=deduplicated,
            stats=stats,
        )


def clean_sales(
    dataset: StoreDataset,
    settings: Optional[CleaningSettings] = None,
) -> CleaningResult:
    """
    Convenience function to clean a dataset.

    Args:
        dataset: Typed regions/stores/sales tables
        settings: Winsorization bounds override

    Returns:
        CleaningResult with every intermediate snapshot
    """
    return SalesCleaner(settings).clean(dataset)
