"""
Data Ingestion Module
"""
from .batch_loader import BatchLoader, BatchFileConfig, DatasetLoadError, FileFormat, StoreDataset

__all__ = [
    "BatchLoader",
    "BatchFileConfig",
    "DatasetLoadError",
    "FileFormat",
    "StoreDataset",
]
