"""
Unit Tests - Statistical Helpers
"""
import pytest
import polars as pl

from store_analytics.analytics.stats import (
    assign_ntile,
    clamp,
    finite_or_none,
    linear_fit,
    percentile_cont,
    safe_ratio,
)


class TestPercentiles:
    """Tests for continuous percentiles"""

    def test_interpolates_between_order_statistics(self):
        assert percentile_cont([1.0, 2.0, 3.0, 4.0], 0.5) == pytest.approx(2.5)
        assert percentile_cont(list(range(1, 11)), 0.9) == pytest.approx(9.1)

    def test_ignores_nulls(self):
        assert percentile_cont([None, 5.0], 0.5) == 5.0

    def test_empty_is_undefined(self):
        assert percentile_cont([], 0.5) is None
        assert percentile_cont([None, None], 0.5) is None


class TestNtile:
    """Tests for NTILE bucket assignment"""

    def test_uneven_buckets_match_sql_ntile(self):
        df = pl.DataFrame({"value": [10.0, 20.0, 30.0, 40.0, 50.0]})

        result = assign_ntile(df, "value", 4, alias="bucket")

        # 50 and 40 share the first (larger) bucket
        assert result["bucket"].to_list() == [4, 3, 2, 1, 1]
        assert result["value"].to_list() == df["value"].to_list()

    def test_ties_keep_input_order(self):
        df = pl.DataFrame({"id": [1, 2, 3, 4], "value": [5.0, 5.0, 5.0, 5.0]})

        result = assign_ntile(df, "value", 4, alias="bucket")

        assert result["bucket"].to_list() == [1, 2, 3, 4]

    def test_nulls_rank_last(self):
        df = pl.DataFrame({"value": [None, 1.0, 2.0, 3.0]})

        result = assign_ntile(df, "value", 4, alias="bucket")

        assert result["bucket"].to_list() == [4, 3, 2, 1]

    def test_partitioned(self):
        df = pl.DataFrame({
            "region": ["A", "B", "A"],
            "value": [1.0, 3.0, 2.0],
        })

        result = assign_ntile(df, "value", 2, alias="bucket", partition_by=["region"])

        assert result["bucket"].to_list() == [2, 1, 1]

    def test_ascending(self):
        df = pl.DataFrame({"value": [3.0, 1.0, 2.0]})

        result = assign_ntile(df, "value", 3, alias="bucket", descending=False)

        assert result["bucket"].to_list() == [3, 1, 2]

    def test_more_buckets_than_rows(self):
        df = pl.DataFrame({"value": [2.0, 1.0]})

        result = assign_ntile(df, "value", 4, alias="bucket")

        assert result["bucket"].to_list() == [1, 2]

    def test_empty_frame(self):
        df = pl.DataFrame({"value": pl.Series([], dtype=pl.Float64)})

        result = assign_ntile(df, "value", 4, alias="bucket")

        assert "bucket" in result.columns
        assert result.is_empty()


class TestArithmetic:
    """Tests for null-propagating helpers"""

    def test_safe_ratio(self):
        df = pl.DataFrame({"num": [10.0, 10.0, None], "den": [4, 0, 2]})

        result = df.select(safe_ratio("num", "den").alias("ratio"))

        assert result["ratio"].to_list() == [2.5, None, None]

    def test_clamp_treats_undefined_as_zero(self):
        df = pl.DataFrame({"z": [None, 5.0, -5.0, 1.0]})

        result = df.select(clamp(pl.col("z"), 3.0).alias("z_c"))

        assert result["z_c"].to_list() == [0.0, 3.0, -3.0, 1.0]

    def test_finite_or_none(self):
        assert finite_or_none(float("nan")) is None
        assert finite_or_none(float("inf")) is None
        assert finite_or_none(None) is None
        assert finite_or_none(1.5) == 1.5


class TestLinearFit:
    """Tests for the regression helper"""

    def test_exact_line(self):
        result = linear_fit([1.0, 2.0, 3.0], [3.0, 5.0, 7.0])

        assert result.n == 3
        assert result.slope == pytest.approx(2.0)
        assert result.intercept == pytest.approx(1.0)
        assert result.correlation == pytest.approx(1.0)

    def test_counts_complete_pairs_only(self):
        result = linear_fit([1.0, None, 2.0, 3.0], [3.0, 4.0, None, 7.0])

        assert result.n == 2
        assert result.slope == pytest.approx(2.0)

    def test_too_few_points(self):
        result = linear_fit([1.0], [2.0])

        assert result.n == 1
        assert result.slope is None
        assert result.correlation is None

    def test_constant_x_is_undefined(self):
        result = linear_fit([2.0, 2.0, 2.0], [1.0, 2.0, 3.0])

        assert result.slope is None
        assert result.intercept is None
        assert result.correlation is None

    def test_constant_y_has_no_correlation(self):
        result = linear_fit([1.0, 2.0, 3.0], [4.0, 4.0, 4.0])

        assert result.slope == pytest.approx(0.0)
        assert result.intercept == pytest.approx(4.0)
        assert result.correlation is None

    def test_to_dict(self):
        assert linear_fit([], []).to_dict() == {
            "n": 0,
            "correlation": None,
            "slope": None,
            "intercept": None,
        }
