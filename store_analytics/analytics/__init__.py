"""
Analytics Module
"""
from .benchmarks import RiskScorer, add_z_scores, region_peer_stats, score_stores
from .cohorts import CohortAnalyzer
from .kpis import KPIAggregator, store_window_aggregates, trailing_window
from .regional import RegionalFactorAnalyzer
from .stats import RegressionStats, assign_ntile, linear_fit, percentile_cont

__all__ = [
    "RiskScorer",
    "add_z_scores",
    "region_peer_stats",
    "score_stores",
    "CohortAnalyzer",
    "KPIAggregator",
    "store_window_aggregates",
    "trailing_window",
    "RegionalFactorAnalyzer",
    "RegressionStats",
    "assign_ntile",
    "linear_fit",
    "percentile_cont",
]
