"""Typed exceptions raised by the indexer.

Every error carries a machine-readable `code` class attribute and the
structured data needed to report it, so callers can catch by type instead of
matching message text.

    IndexerError (base)
    |
    +-- MalformedEventError      event rejected before any store access
    +-- AmountOverflowError      a sum no longer fits the configured width
    +-- OutOfOrderEventError     the source broke its ordering guarantee
    +-- StoreError               storage failure; retry from the same position
"""

from __future__ import annotations

from typing import Any


class IndexerError(Exception):
    """Base exception for all indexer errors."""

    code: str = "INDEXER_ERROR"


class MalformedEventError(IndexerError):
    """An event record is missing required fields or carries invalid values."""

    code: str = "MALFORMED_EVENT"

    def __init__(self, reason: str, record: Any = None, event_id: str | None = None):
        self.reason = reason
        self.record = record
        self.event_id = event_id
        where = f" (event {event_id})" if event_id else ""
        super().__init__(f"Malformed event{where}: {reason}")


class AmountOverflowError(IndexerError):
    """Adding an amount would exceed the unsigned integer width in use."""

    code: str = "AMOUNT_OVERFLOW"

    def __init__(self, entity: str, current: int, amount: int, bits: int):
        self.entity = entity
        self.current = current
        self.amount = amount
        self.bits = bits
        super().__init__(
            f"Adding {amount} to {entity} (currently {current}) "
            f"exceeds uint{bits}"
        )


class OutOfOrderEventError(IndexerError):
    """An event arrived behind the previously processed one."""

    code: str = "OUT_OF_ORDER_EVENT"

    def __init__(self, event_id: str | None, previous_event_id: str | None, detail: str):
        self.event_id = event_id
        self.previous_event_id = previous_event_id
        super().__init__(
            f"Event {event_id} is out of order after {previous_event_id}: {detail}"
        )


class StoreError(IndexerError):
    """The aggregate store failed to read or write."""

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        super().__init__(f"Store {operation} failed: {detail}")
