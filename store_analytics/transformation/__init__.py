"""
Data Transformation Module
"""
from .cleaners import CleaningResult, SalesCleaner, clean_sales
from .enrichers import SalesEnricher, anomalies_view, clean_alltime, enrich_sales
from .transformers import BundleName, PipelineResult, ReportingPipeline, run_pipeline

__all__ = [
    "CleaningResult",
    "SalesCleaner",
    "clean_sales",
    "SalesEnricher",
    "anomalies_view",
    "clean_alltime",
    "enrich_sales",
    "BundleName",
    "PipelineResult",
    "ReportingPipeline",
    "run_pipeline",
]
