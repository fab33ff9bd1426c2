"""Indexer runner: drives an ordered event source through the engine.

Each event is handled in its own store unit of work: claims are folded into
the aggregates, the event is optionally written to the raw event log, and the
checkpoint advances to it. A failure anywhere leaves the store at the
previous checkpoint, so the caller can retry from the same position.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping

from payroll_indexer.aggregate.engine import AggregationEngine
from payroll_indexer.errors import MalformedEventError
from payroll_indexer.ingest.source import OrderingGuard, ResumeFilter
from payroll_indexer.models import ChainEvent, Checkpoint, ClaimEvent, parse_event
from payroll_indexer.store.base import AggregateStore

log = logging.getLogger(__name__)

PROGRESS_EVERY = 1000


def require_event_id(event: ChainEvent, record: Any = None) -> ChainEvent:
    """Return `event` if it carries an id, else raise `MalformedEventError`.

    The checkpoint and the raw event log are keyed by the id.
    """
    if event.event_id is None:
        raise MalformedEventError(
            "event_id (or transaction_hash and log_index) is required", record
        )
    return event


@dataclass
class RunStats:
    """Counters reported by `Indexer.run`."""
    processed: int = 0
    claims: int = 0
    skipped_committed: int = 0
    malformed: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


class Indexer:
    """Consumes payroll events into an `AggregateStore`.

    Args:
        store: Store holding aggregates, raw events and the checkpoint.
        engine: Engine used for claims; one bound to `store` is built if omitted.
        record_raw_events: Keep every consumed event in the raw event log.
    """

    def __init__(
        self,
        store: AggregateStore,
        engine: AggregationEngine | None = None,
        record_raw_events: bool = True,
    ) -> None:
        if engine is not None and engine.store is not store:
            raise ValueError("engine must be bound to the same store as the indexer")
        self._store = store
        self._engine = engine or AggregationEngine(store)
        self._record_raw = record_raw_events

    def handle(self, event: ChainEvent, processed: int | None = None) -> None:
        """Apply one event and advance the checkpoint, atomically.

        Args:
            event: Validated event.
            processed: Value for the checkpoint's counter; defaults to the
                stored counter plus one.
        """
        require_event_id(event, event)
        with self._store.transaction():
            if processed is None:
                previous = self._store.load_checkpoint()
                processed = (previous.processed if previous else 0) + 1
            if isinstance(event, ClaimEvent):
                self._engine.handle_claim(event)
            if self._record_raw:
                self._store.save_raw_event(event)
            self._store.save_checkpoint(Checkpoint.after(event, processed))

    def run(
        self,
        source: Iterable[Mapping[str, Any] | ChainEvent],
        on_malformed: Literal["raise", "skip"] = "raise",
        resume: bool = True,
    ) -> RunStats:
        """Consume `source` in order until it is exhausted.

        Args:
            source: Raw records or typed events in chain order.
            on_malformed: `"raise"` stops at the first invalid record;
                `"skip"` logs it at ERROR level, counts it and continues.
            resume: Skip events at or before the stored checkpoint.

        Returns:
            `RunStats` for this run.

        Raises:
            MalformedEventError: invalid record with `on_malformed="raise"`.
            OutOfOrderEventError: the source went backwards.
            AmountOverflowError, StoreError: propagated from the engine/store.
        """
        if on_malformed not in ("raise", "skip"):
            raise ValueError(f"on_malformed must be 'raise' or 'skip', got {on_malformed!r}")

        checkpoint = self._store.load_checkpoint()
        processed = checkpoint.processed if checkpoint else 0
        guard = OrderingGuard(checkpoint if resume else None)
        resume_filter = ResumeFilter(checkpoint if resume else None)
        stats = RunStats()

        log.info(
            "Indexer run starting (checkpoint=%s)",
            checkpoint.event_id if checkpoint else "none",
        )

        for index, record in enumerate(source):
            try:
                event = require_event_id(parse_event(record), record)
            except MalformedEventError as e:
                if on_malformed == "raise":
                    raise
                stats.malformed += 1
                log.error("Skipping malformed record #%d: %s", index, e.reason)
                continue

            if resume_filter.already_committed(event):
                stats.skipped_committed += 1
                continue

            guard.check(event)
            processed += 1
            self.handle(event, processed)

            stats.processed += 1
            stats.by_kind[event.kind] = stats.by_kind.get(event.kind, 0) + 1
            if isinstance(event, ClaimEvent):
                stats.claims += 1
            if stats.processed % PROGRESS_EVERY == 0:
                log.info("Processed %d events (last %s)", stats.processed, event.event_id)

        if resume_filter.waiting and stats.skipped_committed:
            log.warning(
                "Source ended without reaching checkpoint %s; %d events were skipped",
                checkpoint.event_id if checkpoint else "none",
                stats.skipped_committed,
            )
        log.info(
            "Indexer run complete: processed=%d claims=%d skipped=%d malformed=%d",
            stats.processed,
            stats.claims,
            stats.skipped_committed,
            stats.malformed,
        )
        return stats
