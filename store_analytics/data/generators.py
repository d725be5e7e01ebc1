"""
Synthetic Data Generator

Generates a reproducible retail dataset for development and tests.
Includes:
- Regions with population and average income
- Stores with city, region and opening date (some open mid-history)
- Daily store sales with weekday seasonality and an opening ramp

Sales carry the data problems the cleaning stage is built for: duplicate
(store, date) rows, zero-transaction days with revenue, negative
transactions, returns days, revenue spikes, null dates and orphan rows.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import polars as pl
import structlog
from faker import Faker

from store_analytics.config import get_settings
from store_analytics.ingestion.batch_loader import REGIONS_SCHEMA, SALES_SCHEMA, STORES_SCHEMA

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

# Relative traffic by ISO weekday, Monday first
WEEKDAY_FACTORS = [0.85, 0.9, 0.95, 1.0, 1.2, 1.35, 0.75]

RAMP_WEEKS = 8.0


@dataclass
class AnomalyRates:
    """Share of sales rows receiving each injected problem"""
    duplicates: float = 0.01
    tx0_revpos: float = 0.003
    tx_negative: float = 0.002
    returns_days: float = 0.003
    spikes: float = 0.002
    null_dates: float = 0.002
    orphans: float = 0.002


# =============================================================================
# GENERATORS
# =============================================================================

class RegionGenerator:
    """Generate region dimension rows"""

    def __init__(self, rng: np.random.Generator, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, n: int = 8) -> pl.DataFrame:
        names = []
        while len(names) < n:
            name = self.fake.state()
            if name not in names:
                names.append(name)

        return pl.DataFrame(
            {
                "region": names,
                "population": self.rng.integers(200_000, 5_000_000, n),
                "avg_income": np.round(self.rng.uniform(28_000, 95_000, n), 2),
            },
            schema=REGIONS_SCHEMA,
        )


class StoreGenerator:
    """Generate store master rows spread over the regions"""

    def __init__(self, rng: np.random.Generator, fake: Faker, regions: pl.DataFrame):
        self.rng = rng
        self.fake = fake
        self.region_names = regions["region"].to_list()

    def generate(self, n: int, start_date: date, end_date: date) -> pl.DataFrame:
        """
        Opening dates fall between three years before ``start_date`` and one
        month before ``end_date`` so every lifecycle bucket is populated.
        """
        earliest = start_date - timedelta(days=3 * 365)
        span = (end_date - timedelta(days=30) - earliest).days
        offsets = self.rng.integers(0, span, n)

        return pl.DataFrame(
            {
                "store_id": np.arange(1, n + 1),
                "city": [self.fake.city() for _ in range(n)],
                "region": self.rng.choice(self.region_names, n),
                "opening_date": [earliest + timedelta(days=int(d)) for d in offsets],
            },
            schema=STORES_SCHEMA,
        )


class SalesGenerator:
    """Generate daily sales for every open store"""

    def __init__(self, rng: np.random.Generator, stores: pl.DataFrame, rates: Optional[AnomalyRates] = None):
        self.rng = rng
        self.stores = stores
        self.rates = rates or AnomalyRates()

    def generate(self, start_date: date, end_date: date) -> pl.DataFrame:
        """Clean daily rows first, then the injected anomalies"""
        sales = self._daily_sales(start_date, end_date)
        return self._inject_anomalies(sales)

    def _daily_sales(self, start_date: date, end_date: date) -> pl.DataFrame:
        n_stores = len(self.stores)
        store_profile = self.stores.select(["store_id", "opening_date"]).with_columns([
            pl.Series("base_revenue", np.round(self.rng.lognormal(8.0, 0.35, n_stores), 2)),
            pl.Series("base_aov", np.round(self.rng.uniform(18.0, 65.0, n_stores), 2)),
        ])
        dates = pl.DataFrame({"date": pl.date_range(start_date, end_date, "1d", eager=True)})

        grid = (
            store_profile.join(dates, how="cross")
            .filter(pl.col("date") >= pl.col("opening_date"))
            .sort(["store_id", "date"])
        )
        n = len(grid)

        weekday_factor = pl.col("date").dt.weekday().replace_strict(
            list(range(1, 8)), WEEKDAY_FACTORS, return_dtype=pl.Float64
        )
        weeks_open = (pl.col("date") - pl.col("opening_date")).dt.total_days() / 7.0
        ramp = 1.0 - (-(weeks_open + 1.0) / RAMP_WEEKS).exp() * 0.7

        grid = grid.with_columns(
            (pl.col("base_revenue") * weekday_factor * ramp * pl.Series(self.rng.normal(1.0, 0.12, n)))
            .clip(lower_bound=1.0)
            .round(2)
            .alias("revenue")
        )
        mean_tx = (grid["revenue"] / grid["base_aov"]).to_numpy()

        return grid.with_columns(
            pl.Series("transactions", np.maximum(self.rng.poisson(mean_tx), 1)).cast(pl.Int64)
        ).select(list(SALES_SCHEMA))

    def _inject_anomalies(self, sales: pl.DataFrame) -> pl.DataFrame:
        n = len(sales)
        rates = self.rates
        order = self.rng.permutation(n)

        # Disjoint row sets so each anomaly is observable on its own
        sizes = [
            int(n * rates.tx0_revpos),
            int(n * rates.tx_negative),
            int(n * rates.returns_days),
            int(n * rates.spikes),
            int(n * rates.null_dates),
        ]
        bounds = np.cumsum([0] + sizes)
        tx0, tx_neg, returns, spikes, null_dates = (
            order[lo:hi].tolist() for lo, hi in zip(bounds[:-1], bounds[1:])
        )

        idx = pl.col("row_idx")
        sales = sales.with_row_index("row_idx").with_columns([
            pl.when(idx.is_in(tx0)).then(0)
            .when(idx.is_in(tx_neg)).then(-pl.col("transactions"))
            .otherwise(pl.col("transactions"))
            .alias("transactions"),
            pl.when(idx.is_in(returns)).then(-(pl.col("revenue") * 0.2).round(2))
            .when(idx.is_in(spikes)).then(pl.col("revenue") * 12)
            .otherwise(pl.col("revenue"))
            .alias("revenue"),
            pl.when(idx.is_in(null_dates)).then(pl.lit(None, dtype=pl.Date))
            .otherwise(pl.col("date"))
            .alias("date"),
        ])

        # Duplicate (store, date) rows with a perturbed revenue
        dup_idx = self.rng.choice(n, int(n * rates.duplicates), replace=False).tolist()
        duplicates = sales.filter(idx.is_in(dup_idx) & pl.col("date").is_not_null())
        duplicates = duplicates.with_columns(
            (pl.col("revenue") * pl.Series(self.rng.uniform(0.9, 1.1, len(duplicates)))).round(2).alias("revenue")
        )

        # Rows for stores missing from the master table
        n_orphans = min(max(int(n * rates.orphans), 1), n)
        max_store = int(self.stores["store_id"].max())
        orphans = sales.filter(idx.is_in(self.rng.choice(n, n_orphans, replace=False).tolist())).with_columns(
            (pl.col("store_id") + max_store + 1000).alias("store_id")
        )

        return (
            pl.concat([sales, duplicates, orphans])
            .drop("row_idx")
            .select(list(SALES_SCHEMA))
        )


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """
    Main data generator orchestrator.

    Example:
        data = DataGenerator(seed=7).generate_all(n_stores=50, save=False)
    """

    def __init__(self, output_dir: Optional[str] = None, seed: int = 42):
        self.output_dir = Path(output_dir or get_settings().data_lake.raw_path)
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def generate_all(
        self,
        n_regions: int = 8,
        n_stores: int = 120,
        days: int = 365,
        end_date: date = date(2024, 12, 31),
        rates: Optional[AnomalyRates] = None,
        save: bool = True,
    ) -> Dict[str, pl.DataFrame]:
        """Generate regions, stores and sales; optionally write them as CSV"""
        start_date = end_date - timedelta(days=days - 1)
        logger.info(
            "Generating synthetic store data",
            regions=n_regions,
            stores=n_stores,
            start_date=str(start_date),
            end_date=str(end_date),
            seed=self.seed,
        )

        regions = RegionGenerator(self.rng, self.fake).generate(n_regions)
        stores = StoreGenerator(self.rng, self.fake, regions).generate(n_stores, start_date, end_date)
        sales = SalesGenerator(self.rng, stores, rates).generate(start_date, end_date)

        data = {"regions": regions, "stores": stores, "sales": sales}
        if save:
            self._save_data(data)

        logger.info("Data generation complete", sales_rows=len(sales))
        return data

    def _save_data(self, data: Dict[str, pl.DataFrame]) -> None:
        """Save generated tables as CSV"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for name, df in data.items():
            csv_path = self.output_dir / f"{name}.csv"
            df.write_csv(csv_path)
            logger.info(f"Saved {name}: {len(df)} rows -> {csv_path}")
