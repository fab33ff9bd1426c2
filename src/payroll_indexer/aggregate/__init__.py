"""Aggregation of payroll claim events.

This package contains the month bucketer, the aggregation engine that folds
`PayrollClaimed` events into Payee and Month aggregates, the indexer runner
that drives an ordered event source through the engine, and batch
reconciliation of stored aggregates against an event export.
"""
