"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, build_quality_report, validate_dataset

__all__ = [
    "DataValidator",
    "ValidationResult",
    "build_quality_report",
    "validate_dataset",
]
