"""payroll_indexer package.

Contains modules for consuming on-chain payroll events, folding
`PayrollClaimed` events into per-payee and per-month aggregates, persisting
those projections (in memory or in MongoDB), and reconciling them against an
event export.

Architecture:
- Event source → Indexer → Aggregation engine → Aggregate store
- Pydantic models validate events and aggregates
- pandas is used for CSV event exports and batch reconciliation
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
