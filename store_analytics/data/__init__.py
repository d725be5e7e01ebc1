"""
Data Generation Module
"""
from .generators import AnomalyRates, DataGenerator, RegionGenerator, SalesGenerator, StoreGenerator

__all__ = [
    "AnomalyRates",
    "DataGenerator",
    "RegionGenerator",
    "SalesGenerator",
    "StoreGenerator",
]
