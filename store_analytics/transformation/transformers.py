"""
Reporting Pipeline

Orchestrator that composes cleaning, enrichment, analytics and data-quality
reporting into one batch recompute:

    raw -> flagged -> capped -> deduplicated -> enriched -> bundles

Every stage reads the previous snapshot and returns a new one.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog

from store_analytics.analytics.benchmarks import RiskScorer
from store_analytics.analytics.cohorts import CohortAnalyzer
from store_analytics.analytics.kpis import KPIAggregator, store_window_aggregates
from store_analytics.analytics.regional import RegionalFactorAnalyzer
from store_analytics.config import Settings, get_settings
from store_analytics.ingestion.batch_loader import StoreDataset
from store_analytics.quality.validators import build_quality_report
from store_analytics.reporting.bundles import ReportBundle, write_bundles
from .cleaners import CleaningResult, SalesCleaner
from .enrichers import SalesEnricher, anomalies_view, clean_alltime

logger = structlog.get_logger(__name__)


class BundleName(str, Enum):
    """Output bundles, in write order"""
    DATA_QUALITY = "data_quality"
    KPI_CORE = "kpi_core"
    REGIONAL_FACTORS = "regional_factors"
    STORE_LIFECYCLE = "store_lifecycle"
    LEAGUE_AND_RISK = "league_and_risk"


@dataclass(frozen=True)
class PipelineResult:
    """Snapshots and bundles of one pipeline run"""
    cleaning: CleaningResult
    enriched: pl.DataFrame
    core_rows: pl.DataFrame
    anomalies: pl.DataFrame
    window: pl.DataFrame
    store_aggregates: pl.DataFrame
    reference_date: Optional[date]
    bundles: Dict[str, ReportBundle]
    started_at: datetime
    completed_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def bundle(self, name: Union[str, BundleName]) -> ReportBundle:
        key = name.value if isinstance(name, BundleName) else name
        return self.bundles[key]


class ReportingPipeline:
    """
    Batch reporting pipeline orchestrator.

    Example:
        pipeline = ReportingPipeline()
        result = pipeline.run(dataset)
        pipeline.write(result)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        output_path: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.output_path = Path(output_path or self.settings.data_lake.curated_path)

        self.cleaner = SalesCleaner(self.settings.cleaning)
        self.enricher = SalesEnricher(self.settings.lifecycle)
        self.kpis = KPIAggregator(self.settings.window, self.settings.lifecycle)
        self.regional = RegionalFactorAnalyzer()
        self.risk = RiskScorer(self.settings.risk)
        self.cohorts = CohortAnalyzer(self.settings.lifecycle)

    def parameters(self) -> Dict[str, Any]:
        """Settings that shape the outputs, echoed into the KPI bundle"""
        return {
            "cleaning": self.settings.cleaning.model_dump(mode="json"),
            "window": self.settings.window.model_dump(mode="json"),
            "risk": self.settings.risk.model_dump(mode="json"),
            "lifecycle": self.settings.lifecycle.model_dump(mode="json"),
        }

    def run(self, dataset: StoreDataset) -> PipelineResult:
        """
        Recompute every output from the raw tables.

        Pipeline:
        1. Clean (join, flag, winsorize, deduplicate)
        2. Enrich (AOV, store age, per-capita revenue)
        3. Select the trailing window of core rows
        4. KPIs, regional factors, league/risk and lifecycle analytics
        5. Data-quality report
        """
        started_at = datetime.utcnow()
        logger.info(
            "Starting reporting pipeline",
            regions=len(dataset.regions),
            stores=len(dataset.stores),
            sales=len(dataset.sales),
        )

        # Step 1: Clean
        cleaning = self.cleaner.clean(dataset)

        # Step 2: Enrich and split views
        enriched = self.enricher.enrich(cleaning.deduplicated)
        core_rows = clean_alltime(enriched)
        anomalies = anomalies_view(enriched)
        logger.info(f"After enrichment: {len(core_rows)} core rows, {len(anomalies)} anomaly rows")

        # Step 3: Trailing window
        window, reference_date = self.kpis.window(core_rows)
        store_aggs = store_window_aggregates(window)

        # Step 4: Analytics
        kpi_core = self.kpis.build(window, dataset.regions, reference_date)
        kpi_core["parameters"] = self.parameters()
        regional = self.regional.build(window)
        league = self.risk.build(store_aggs)
        lifecycle = self.cohorts.build(core_rows, store_aggs)

        # Step 5: Data quality
        quality = build_quality_report(dataset, cleaning, anomalies)

        payloads = {
            BundleName.DATA_QUALITY: quality,
            BundleName.KPI_CORE: kpi_core,
            BundleName.REGIONAL_FACTORS: regional,
            BundleName.STORE_LIFECYCLE: lifecycle,
            BundleName.LEAGUE_AND_RISK: league,
        }
        bundles = {
            name.value: ReportBundle(name=name.value, payload=payload)
            for name, payload in payloads.items()
        }

        completed_at = datetime.utcnow()
        logger.info(
            "Reporting pipeline complete",
            reference_date=str(reference_date),
            window_rows=len(window),
            stores_scored=len(store_aggs),
            duration_seconds=round((completed_at - started_at).total_seconds(), 3),
        )

        return PipelineResult(
            cleaning=cleaning,
            enriched=enriched,
            core_rows=core_rows,
            anomalies=anomalies,
            window=window,
            store_aggregates=store_aggs,
            reference_date=reference_date,
            bundles=bundles,
            started_at=started_at,
            completed_at=completed_at,
        )

    def write(
        self,
        result: PipelineResult,
        output_path: Optional[Union[str, Path]] = None,
    ) -> Dict[str, str]:
        """Write every bundle of ``result`` as JSON to the curated zone"""
        return write_bundles(result.bundles.values(), output_path or self.output_path)


def run_pipeline(
    dataset: StoreDataset,
    settings: Optional[Settings] = None,
    output_path: Optional[str] = None,
) -> PipelineResult:
    """
    Convenience function to run the pipeline and write its bundles.

    Args:
        dataset: Typed regions/stores/sales tables
        settings: Settings override
        output_path: Bundle directory; nothing is written when None

    Returns:
        PipelineResult of the run
    """
    pipeline = ReportingPipeline(settings, output_path)
    result = pipeline.run(dataset)
    if output_path is not None:
        pipeline.write(result)
    return result


def bundle_names() -> List[str]:
    return [name.value for name in BundleName]
