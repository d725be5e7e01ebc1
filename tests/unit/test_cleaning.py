"""
Unit Tests - Sales Cleaning
"""
from datetime import date

import pytest
import polars as pl

from store_analytics.config import CleaningSettings
from store_analytics.transformation.cleaners import SalesCleaner, clean_sales
from store_analytics.transformation.enrichers import anomalies_view, enrich_sales


class TestJoinAndFlags:
    """Tests for dimension join and anomaly flags"""

    def test_orphans_dropped_and_counted(self, sample_dataset, no_winsor):
        """Rows for unknown stores or regions leave the joined table"""
        result = SalesCleaner(no_winsor).clean(sample_dataset)

        assert result.stats.raw_rows == 10
        assert result.stats.orphan_rows == 2
        assert result.stats.joined_rows == 8
        assert set(result.flagged["store_id"].to_list()) == {1, 2, 3}

    def test_flag_counts(self, sample_dataset, no_winsor):
        result = SalesCleaner(no_winsor).clean(sample_dataset)

        assert result.stats.flag_counts == {
            "flag_tx_negative": 1,
            "flag_date_null": 1,
            "flag_tx0_revpos": 1,
            "flag_rev_nonpos_txpos": 1,
        }
        assert result.stats.kept_rows == 5
        assert result.stats.excluded_rows == 3

    def test_zero_transactions_with_revenue_excluded_but_reported(self, sample_dataset, no_winsor):
        """A day with 0 transactions and revenue 150 leaves the KPI base but stays visible"""
        result = SalesCleaner(no_winsor).clean(sample_dataset)
        row = result.deduplicated.filter(
            (pl.col("store_id") == 1) & (pl.col("date") == date(2024, 2, 1))
        )

        assert row["flag_tx0_revpos"].to_list() == [1]
        assert row["keep_core"].to_list() == [0]
        assert row["exclusion_reason"].to_list() == ["tx0_revpos"]

        anomalies = anomalies_view(enrich_sales(result.deduplicated))
        hit = anomalies.filter((pl.col("store_id") == 1) & (pl.col("date") == date(2024, 2, 1)))
        assert len(hit) == 1
        assert hit["revenue"].to_list() == [150.0]

    def test_returns_day_kept_in_core(self, sample_dataset, no_winsor):
        """Negative revenue with transactions is flagged but kept"""
        result = SalesCleaner(no_winsor).clean(sample_dataset)
        row = result.deduplicated.filter(
            (pl.col("store_id") == 2) & (pl.col("date") == date(2024, 2, 1))
        )

        assert row["flag_rev_nonpos_txpos"].to_list() == [1]
        assert row["keep_core"].to_list() == [1]
        assert row["exclusion_reason"].to_list() == [None]

    def test_exclusion_reason_precedence(self):
        """Negative transactions win over a null date"""
        cleaner = SalesCleaner(CleaningSettings())
        df = pl.DataFrame({
            "date": pl.Series([None], dtype=pl.Date),
            "revenue": [10.0],
            "transactions": [-1],
        })

        result = cleaner.mark_core_rows(cleaner.flag_anomalies(df))

        assert result["flag_tx_negative"].to_list() == [1]
        assert result["flag_date_null"].to_list() == [1]
        assert result["exclusion_reason"].to_list() == ["tx_negative"]
        assert result["keep_core"].to_list() == [0]


class TestWinsorization:
    """Tests for revenue capping per (region, date)"""

    @pytest.fixture
    def group_df(self) -> pl.DataFrame:
        return pl.DataFrame({
            "store_id": [1, 2, 3, 4, 5, 6, 7],
            "region": ["R"] * 7,
            "date": [date(2024, 1, 1)] * 5 + [None, None],
            "revenue": [10.0, 20.0, 30.0, 40.0, 1000.0, 5000.0, 10.0],
            "transactions": [1] * 7,
        })

    def test_caps_to_continuous_percentiles(self, group_df):
        cleaner = SalesCleaner(CleaningSettings(winsor_lower_pct=0.1, winsor_upper_pct=0.9))
        thresholds = cleaner.compute_revenue_thresholds(group_df)
        capped = cleaner.apply_revenue_caps(group_df, thresholds)

        dated = capped.filter(pl.col("date").is_not_null()).sort("store_id")
        assert dated["revenue"].to_list() == pytest.approx([14.0, 20.0, 30.0, 40.0, 616.0])

    def test_null_dates_never_capped(self, group_df):
        cleaner = SalesCleaner(CleaningSettings(winsor_lower_pct=0.1, winsor_upper_pct=0.9))
        thresholds = cleaner.compute_revenue_thresholds(group_df)
        capped = cleaner.apply_revenue_caps(group_df, thresholds)

        undated = capped.filter(pl.col("date").is_null()).sort("store_id")
        assert undated["revenue"].to_list() == [5000.0, 10.0]

    def test_reapplying_same_thresholds_is_noop(self, group_df):
        cleaner = SalesCleaner(CleaningSettings(winsor_lower_pct=0.1, winsor_upper_pct=0.9))
        thresholds = cleaner.compute_revenue_thresholds(group_df)

        once = cleaner.apply_revenue_caps(group_df, thresholds)
        twice = cleaner.apply_revenue_caps(once, thresholds)

        assert once.equals(twice)


class TestDeduplication:
    """Tests for (store_id, date) deduplication"""

    def test_keeps_highest_revenue_then_transactions(self):
        cleaner = SalesCleaner(CleaningSettings())
        df = pl.DataFrame({
            "store_id": [1, 1, 1, 2],
            "date": [date(2024, 3, 1)] * 4,
            "revenue": [100.0, 120.0, 120.0, 50.0],
            "transactions": [10, 5, 8, 2],
        })

        result = cleaner.deduplicate(df)

        assert len(result) == 2
        winner = result.filter(pl.col("store_id") == 1)
        assert winner["revenue"].to_list() == [120.0]
        assert winner["transactions"].to_list() == [8]
        assert result.columns == df.columns

    def test_full_tie_keeps_first_source_row(self):
        cleaner = SalesCleaner(CleaningSettings())
        df = pl.DataFrame({
            "source_row": [0, 1],
            "store_id": [1, 1],
            "date": [date(2024, 3, 1)] * 2,
            "revenue": [100.0, 100.0],
            "transactions": [5, 5],
            "tag": ["first", "second"],
        }).with_columns(pl.col("source_row").cast(pl.UInt32))

        assert cleaner.deduplicate(df)["tag"].to_list() == ["first"]

    def test_pipeline_dedup_stats(self, sample_dataset, no_winsor):
        result = clean_sales(sample_dataset, no_winsor)

        assert result.stats.duplicate_groups == 1
        assert result.stats.duplicates_removed == 1
        assert result.stats.rows_after_cleaning == 7
        kept = result.deduplicated.filter(
            (pl.col("store_id") == 2) & (pl.col("date") == date(2024, 2, 3))
        )
        assert kept["revenue"].to_list() == [320.0]

    def test_dedup_runs_after_capping(self, sample_dataset):
        """The kept duplicate has the highest capped revenue"""
        result = clean_sales(sample_dataset, CleaningSettings())
        kept = result.deduplicated.filter(
            (pl.col("store_id") == 2) & (pl.col("date") == date(2024, 2, 3))
        )
        group = result.capped.filter(
            (pl.col("store_id") == 2) & (pl.col("date") == date(2024, 2, 3))
        )

        assert kept["revenue"].to_list() == [group["revenue"].max()]
