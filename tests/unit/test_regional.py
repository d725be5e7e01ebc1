"""
Unit Tests - Regional Factors
"""
from datetime import date

import pytest
import polars as pl

from store_analytics.analytics.regional import RegionalFactorAnalyzer


@pytest.fixture
def window_df() -> pl.DataFrame:
    return pl.DataFrame({
        "store_id": [1, 2, 3, 4, 5],
        "region": ["A", "A", "B", "C", "D"],
        "date": [date(2024, 1, 1)] * 5,
        "revenue": [100.0, 100.0, 300.0, 400.0, 50.0],
        "transactions": [10, 10, 20, 20, 0],
        "population": [1000, 1000, 3000, 0, 500],
        "avg_income": [10.0, 10.0, 20.0, 30.0, 40.0],
    })


class TestRegionalFactorAnalyzer:
    """Tests for RegionalFactorAnalyzer"""

    def test_region_aggregates(self, window_df):
        result = RegionalFactorAnalyzer().region_aggregates(window_df)
        rows = {r["region"]: r for r in result.to_dicts()}

        assert rows["A"]["revenue"] == 200.0
        assert rows["A"]["aov"] == pytest.approx(10.0)
        assert rows["A"]["revenue_per_capita"] == pytest.approx(0.2)
        assert rows["C"]["revenue_per_capita"] is None
        assert rows["D"]["aov"] is None

    def test_income_bins_ascending(self, window_df):
        analyzer = RegionalFactorAnalyzer()
        binned = analyzer.with_bins(analyzer.region_aggregates(window_df))
        rows = {r["region"]: r for r in binned.to_dicts()}

        # four regions in five buckets: one region per bucket, poorest first
        assert [rows[r]["income_quintile"] for r in "ABCD"] == [1, 2, 3, 4]
        assert rows["C"]["population_tercile"] == 1

    def test_decomposition_components_sum_to_revenue_gap(self, window_df):
        analyzer = RegionalFactorAnalyzer()
        decomposition = analyzer.revenue_decomposition(
            analyzer.region_aggregates(window_df).filter(pl.col("region") != "D")
        )

        for row in decomposition.to_dicts():
            total = row["aov_component"] + row["tx_component"] + row["cross_component"]
            expected = row["revenue"] - row["net_aov"] * row["net_transactions"]
            assert total == pytest.approx(
                row["aov"] * row["transactions"] - row["net_aov"] * row["net_transactions"]
            )
            assert expected == pytest.approx(total)

    def test_build(self, window_df):
        bundle = RegionalFactorAnalyzer().build(window_df)

        assert set(bundle) == {
            "regions_percap_incomebins", "income_aov_regression",
            "regional_revenue_decomposition", "income_quintile_summary",
            "population_tercile_summary",
        }
        # region D has no AOV, so it is left out of the fit
        assert bundle["income_aov_regression"].n == 3
        assert bundle["regions_percap_incomebins"]["region"].to_list()[-1] == "D"
