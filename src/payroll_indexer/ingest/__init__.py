"""Event source adapters.

Provides the CSV export reader, validation of raw records into typed events,
and the ordering/resume helpers that encode the source's delivery contract.
"""
