"""
Store Analytics Reporting Pipeline

Cleans daily store sales, derives KPIs and benchmarks stores against their
regional peers. Outputs are JSON bundles for dashboard tooling.
"""

__version__ = "1.0.0"
