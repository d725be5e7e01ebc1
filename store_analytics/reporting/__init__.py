"""
Reporting Module
"""
from .bundles import ReportBundle, to_jsonable, write_bundles

__all__ = [
    "ReportBundle",
    "to_jsonable",
    "write_bundles",
]
