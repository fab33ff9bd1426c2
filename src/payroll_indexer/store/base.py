"""Protocol implemented by aggregate store backends."""

from __future__ import annotations

from typing import ContextManager, Iterator, Protocol

from payroll_indexer.models import (
    ChainEvent,
    Checkpoint,
    MonthAggregate,
    PayeeAggregate,
)


class AggregateStore(Protocol):
    """Key-value storage for the Payee and Month projections.

    `load_or_create_*` return a fresh copy of the stored record, or a
    zero-initialized one that is not persisted until it is saved. `save_*`
    upsert the whole record by identity.

    Saves made inside `transaction()` commit together when the block exits
    normally and are discarded when it raises; nested calls join the outer
    unit of work. Saves outside a transaction commit immediately.

    Storage failures raise `StoreError`.
    """

    def transaction(self) -> ContextManager[None]: ...

    def load_or_create_payee(self, payee_id: str) -> PayeeAggregate: ...

    def save_payee(self, payee: PayeeAggregate) -> None: ...

    def load_or_create_month(self, key: int) -> MonthAggregate: ...

    def save_month(self, month: MonthAggregate) -> None: ...

    def save_raw_event(self, event: ChainEvent) -> None: ...

    def iter_raw_events(self, kind: str | None = None) -> Iterator[ChainEvent]: ...

    def load_checkpoint(self) -> Checkpoint | None: ...

    def save_checkpoint(self, checkpoint: Checkpoint) -> None: ...

    def get_payee(self, payee_id: str) -> PayeeAggregate | None: ...

    def get_month(self, key: int) -> MonthAggregate | None: ...

    def iter_payees(self) -> Iterator[PayeeAggregate]: ...

    def iter_months(self) -> Iterator[MonthAggregate]: ...
