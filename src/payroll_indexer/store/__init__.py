"""Aggregate store backends.

`AggregateStore` is the protocol the engine and indexer depend on;
`InMemoryAggregateStore` and `MongoAggregateStore` implement it.
"""

from payroll_indexer.store.base import AggregateStore
from payroll_indexer.store.memory import InMemoryAggregateStore
from payroll_indexer.store.mongo import MongoAggregateStore

__all__ = ["AggregateStore", "InMemoryAggregateStore", "MongoAggregateStore"]
