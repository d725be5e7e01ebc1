"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from store_analytics.config import (
    CleaningSettings,
    LifecycleSettings,
    RiskSettings,
    Settings,
    WindowSettings,
)
from store_analytics.ingestion.batch_loader import StoreDataset


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        cleaning=CleaningSettings(),
        window=WindowSettings(window_days=30),
        risk=RiskSettings(),
        lifecycle=LifecycleSettings(),
    )


@pytest.fixture
def no_winsor() -> CleaningSettings:
    """Cleaning settings whose percentile bounds never cap anything"""
    return CleaningSettings(winsor_lower_pct=0.0, winsor_upper_pct=1.0)


@pytest.fixture
def sample_regions_df() -> pl.DataFrame:
    """Create sample regions DataFrame for testing"""
    return pl.DataFrame({
        "region": ["North", "South", "Empty"],
        "population": [1000, 2000, 0],
        "avg_income": [50000.0, 40000.0, 30000.0],
    })


@pytest.fixture
def sample_stores_df() -> pl.DataFrame:
    """Stores 1-3 in known regions, store 4 in a region missing from the master"""
    return pl.DataFrame({
        "store_id": [1, 2, 3, 4],
        "city": ["Oslo", "Bergen", "Madrid", "Nowhere"],
        "region": ["North", "North", "South", "Ghost"],
        "opening_date": [date(2024, 1, 1), date(2024, 1, 1), date(2024, 3, 1), date(2024, 1, 1)],
    })


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """
    Daily sales with one of each data problem:
    - store 1 on 2024-02-01: zero transactions with revenue 150
    - store 1 on 2024-02-02: negative transactions
    - store 1 with a null date
    - store 2 on 2024-02-01: returns day (negative revenue, transactions > 0)
    - store 2 on 2024-02-03: duplicated
    - store 4 (unknown region) and store 99 (unknown store): orphans
    """
    return pl.DataFrame({
        "store_id": [1, 1, 1, 2, 2, 2, 2, 3, 4, 99],
        "date": [
            date(2024, 2, 1), date(2024, 2, 2), None,
            date(2024, 2, 1), date(2024, 2, 3), date(2024, 2, 3), date(2024, 2, 4),
            date(2024, 3, 2), date(2024, 2, 1), date(2024, 2, 1),
        ],
        "revenue": [150.0, 100.0, 80.0, -20.0, 300.0, 320.0, 250.0, 400.0, 90.0, 60.0],
        "transactions": [0, -3, 5, 4, 10, 12, 9, 20, 3, 2],
    })


@pytest.fixture
def sample_dataset(sample_regions_df, sample_stores_df, sample_sales_df) -> StoreDataset:
    """Typed dataset built from the sample frames"""
    return StoreDataset.from_frames(sample_regions_df, sample_stores_df, sample_sales_df)


@pytest.fixture
def store_aggs_df() -> pl.DataFrame:
    """
    Window aggregates of eight stores in one region.

    Revenue mean is 800 with population stddev 100; transactions are
    constant so their z-scores are undefined.
    """
    revenues = [1000.0, 600.0, 800.0, 800.0, 800.0, 800.0, 800.0, 800.0]
    return pl.DataFrame({
        "store_id": list(range(1, 9)),
        "region": ["R"] * 8,
        "revenue": revenues,
        "transactions": [100] * 8,
        "aov": [r / 100 for r in revenues],
    })
