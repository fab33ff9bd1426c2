"""In-process aggregate store.

Keeps committed records in dictionaries and stages saves made inside a
transaction until the unit of work completes. A re-entrant lock serializes
units of work, so a single store can be shared by threads without lost
updates.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from payroll_indexer.models import (
    ChainEvent,
    Checkpoint,
    MonthAggregate,
    PayeeAggregate,
    normalize_hex,
)

log = logging.getLogger(__name__)


@dataclass
class _UnitOfWork:
    payees: dict[str, PayeeAggregate] = field(default_factory=dict)
    months: dict[str, MonthAggregate] = field(default_factory=dict)
    raw_events: dict[str, ChainEvent] = field(default_factory=dict)
    checkpoint: Checkpoint | None = None


class InMemoryAggregateStore:
    """Dictionary-backed `AggregateStore`."""

    def __init__(self) -> None:
        self._payees: dict[str, PayeeAggregate] = {}
        self._months: dict[str, MonthAggregate] = {}
        self._raw_events: dict[str, ChainEvent] = {}
        self._checkpoint: Checkpoint | None = None
        self._lock = threading.RLock()
        self._pending: _UnitOfWork | None = None

    # -------------------------
    # Units of work
    # -------------------------
    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._pending is not None:
                yield
                return

            self._pending = _UnitOfWork()
            committed = False
            try:
                yield
                committed = True
            finally:
                pending, self._pending = self._pending, None
                if committed:
                    self._apply(pending)
                else:
                    log.debug("Discarded uncommitted unit of work")

    def _apply(self, work: _UnitOfWork) -> None:
        self._payees.update(work.payees)
        self._months.update(work.months)
        self._raw_events.update(work.raw_events)
        if work.checkpoint is not None:
            self._checkpoint = work.checkpoint

    # -------------------------
    # Payees
    # -------------------------
    def get_payee(self, payee_id: str) -> PayeeAggregate | None:
        key = normalize_hex(payee_id)
        with self._lock:
            pending = self._pending
            found = pending.payees.get(key) if pending is not None else None
            if found is None:
                found = self._payees.get(key)
            return found.model_copy() if found is not None else None

    def load_or_create_payee(self, payee_id: str) -> PayeeAggregate:
        found = self.get_payee(payee_id)
        if found is None:
            return PayeeAggregate(id=payee_id)
        return found

    def save_payee(self, payee: PayeeAggregate) -> None:
        with self._lock:
            pending = self._pending
            target = pending.payees if pending is not None else self._payees
            target[payee.id] = payee.model_copy()

    def iter_payees(self) -> Iterator[PayeeAggregate]:
        with self._lock:
            rows = [p.model_copy() for p in self._payees.values()]
        return iter(sorted(rows, key=lambda p: p.id))

    # -------------------------
    # Months
    # -------------------------
    def get_month(self, key: int) -> MonthAggregate | None:
        month_id = str(key)
        with self._lock:
            pending = self._pending
            found = pending.months.get(month_id) if pending is not None else None
            if found is None:
                found = self._months.get(month_id)
            return found.model_copy() if found is not None else None

    def load_or_create_month(self, key: int) -> MonthAggregate:
        found = self.get_month(key)
        if found is None:
            return MonthAggregate(id=str(key), month=key)
        return found

    def save_month(self, month: MonthAggregate) -> None:
        with self._lock:
            pending = self._pending
            target = pending.months if pending is not None else self._months
            target[month.id] = month.model_copy()

    def iter_months(self) -> Iterator[MonthAggregate]:
        with self._lock:
            rows = [m.model_copy() for m in self._months.values()]
        return iter(sorted(rows, key=lambda m: m.month))

    # -------------------------
    # Raw events & checkpoint
    # -------------------------
    def save_raw_event(self, event: ChainEvent) -> None:
        with self._lock:
            pending = self._pending
            target = pending.raw_events if pending is not None else self._raw_events
            target[event.event_id] = event

    def iter_raw_events(self, kind: str | None = None) -> Iterator[ChainEvent]:
        with self._lock:
            rows = list(self._raw_events.values())
        return iter(e for e in rows if kind is None or e.kind == kind)

    def load_checkpoint(self) -> Checkpoint | None:
        with self._lock:
            pending = self._pending
            if pending is not None and pending.checkpoint is not None:
                return pending.checkpoint
            return self._checkpoint

    def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        with self._lock:
            pending = self._pending
            if pending is not None:
                pending.checkpoint = checkpoint
            else:
                self._checkpoint = checkpoint
