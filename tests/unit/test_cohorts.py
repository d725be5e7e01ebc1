"""
Unit Tests - Store Lifecycle
"""
from datetime import date

import pytest
import polars as pl

from store_analytics.config import LifecycleSettings
from store_analytics.analytics.cohorts import CohortAnalyzer


@pytest.fixture
def analyzer() -> CohortAnalyzer:
    return CohortAnalyzer(LifecycleSettings())


@pytest.fixture
def weeks_df() -> pl.DataFrame:
    """
    Store 1 meets AOV in week 2 but not transactions, and both in week 3.
    Store 2 never meets both.
    """
    return pl.DataFrame({
        "store_id": [1, 1, 1, 1, 2, 2],
        "region": ["North"] * 4 + ["South"] * 2,
        "cohort_month": [date(2024, 1, 1)] * 4 + [date(2024, 2, 1)] * 2,
        "weeks_since_open": [0, 1, 2, 3, 0, 1],
        "week_revenue": [320.0, 540.0, 459.0, 546.0, 100.0, 900.0],
        "week_transactions": [40, 60, 45, 52, 10, 100],
        "week_aov": [8.0, 9.0, 10.2, 10.5, 10.0, 9.0],
    })


class TestStoreWeeks:
    """Tests for store week aggregation"""

    def test_weeks_since_open(self, analyzer):
        core_rows = pl.DataFrame({
            "store_id": [1, 1, 1, 1],
            "region": ["North"] * 4,
            "opening_date": [date(2024, 1, 10)] * 4,
            "date": [date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 16), date(2024, 1, 17)],
            "revenue": [50.0, 100.0, 60.0, 80.0],
            "transactions": [5, 10, 6, 8],
        })

        weeks = analyzer.store_weeks(core_rows)

        # the pre-opening row is not part of any week
        assert weeks["weeks_since_open"].to_list() == [0, 1]
        assert weeks["week_revenue"].to_list() == [160.0, 80.0]
        assert weeks["week_aov"].to_list() == pytest.approx([10.0, 10.0])
        assert weeks["cohort_month"].to_list() == [date(2024, 1, 1)] * 2

    def test_ramp_curve(self, analyzer, weeks_df):
        curve = analyzer.ramp_curve(weeks_df, "region")

        north = curve.filter(pl.col("region") == "North")
        assert north["weeks_since_open"].to_list() == [0, 1, 2, 3]
        assert north["stores_active"].to_list() == [1, 1, 1, 1]


class TestTimeToBenchmark:
    """Tests for time to benchmark"""

    def test_first_week_meeting_both_benchmarks(self, analyzer, weeks_df):
        benchmarks = {"median_aov_store": 10.0, "median_transactions_store": 50.0}

        ttb = analyzer.time_to_benchmark(weeks_df, benchmarks)

        result = dict(zip(ttb["store_id"].to_list(), ttb["weeks_to_benchmark"].to_list()))
        assert result == {1: 3, 2: None}
        # hits first, misses last
        assert ttb["store_id"].to_list() == [1, 2]

    def test_undefined_benchmarks(self, analyzer, weeks_df):
        ttb = analyzer.time_to_benchmark(
            weeks_df, {"median_aov_store": None, "median_transactions_store": 50.0}
        )

        assert ttb["weeks_to_benchmark"].null_count() == 2

    def test_network_benchmarks(self, analyzer):
        store_aggs = pl.DataFrame({
            "aov": [8.0, None, 12.0],
            "transactions": [10, 20, 30],
        })

        benchmarks = analyzer.network_benchmarks(store_aggs)

        assert benchmarks == {"median_aov_store": 10.0, "median_transactions_store": 20.0}

    def test_ttb_summary(self, analyzer, weeks_df):
        ttb = analyzer.time_to_benchmark(
            weeks_df, {"median_aov_store": 10.0, "median_transactions_store": 50.0}
        )

        summary = analyzer.ttb_summary(ttb, "region")

        assert summary.columns == [
            "region", "stores_hit_bench", "stores_total",
            "avg_weeks_to_bench", "p50_weeks_to_bench", "p90_weeks_to_bench",
        ]
        rows = {r["region"]: r for r in summary.to_dicts()}
        assert rows["North"]["stores_hit_bench"] == 1
        assert rows["North"]["p50_weeks_to_bench"] == 3.0
        assert rows["South"]["stores_hit_bench"] == 0
        assert rows["South"]["stores_total"] == 1
        assert rows["South"]["avg_weeks_to_bench"] is None

    def test_build(self, analyzer):
        core_rows = pl.DataFrame({
            "store_id": [1, 1, 2],
            "region": ["North", "North", "South"],
            "opening_date": [date(2024, 1, 1)] * 3,
            "date": [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 1)],
            "revenue": [100.0, 200.0, 50.0],
            "transactions": [10, 20, 5],
        })
        store_aggs = pl.DataFrame({
            "store_id": [1, 2],
            "aov": [10.0, 10.0],
            "transactions": [30, 5],
        })

        bundle = analyzer.build(core_rows, store_aggs)

        assert set(bundle) == {
            "network_benchmarks", "cohort_ramp_curves", "regional_ramp_curves",
            "store_time_to_benchmark", "ttb_region_summary", "ttb_cohort_summary",
        }
        ttb = bundle["store_time_to_benchmark"]
        assert dict(zip(ttb["store_id"].to_list(), ttb["weeks_to_benchmark"].to_list())) == {1: 1, 2: None}
