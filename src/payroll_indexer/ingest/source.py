"""Delivery-contract helpers for event sources.

A source must yield events in chain order and never redeliver a position the
indexer has already committed. `OrderingGuard` checks the first guarantee;
`ResumeFilter` provides the second for sources that replay from the start.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

from payroll_indexer.errors import OutOfOrderEventError
from payroll_indexer.models import ChainEvent, Checkpoint, parse_event


def iter_events(records: Iterable[Mapping[str, Any] | ChainEvent]) -> Iterator[ChainEvent]:
    """Validate raw records into typed events.

    Raises:
        MalformedEventError: on the first record that fails validation.
    """
    for record in records:
        yield parse_event(record)


class OrderingGuard:
    """Rejects events that go backwards in chain order.

    Block timestamps must never decrease. When both the previous and the
    current event carry a `(block_number, log_index)` position, the position
    must strictly increase.
    """

    def __init__(self, start: Checkpoint | None = None) -> None:
        self._last_id: str | None = None
        self._last_ts = 0
        self._last_pos: tuple[int, int] | None = None
        if start is not None:
            self._remember(start.event_id, start.block_timestamp, start.position)

    def _remember(self, event_id: str, ts: int, pos: tuple[int, int] | None) -> None:
        self._last_id = event_id
        self._last_ts = ts
        self._last_pos = pos

    def check(self, event: ChainEvent) -> None:
        """Raise `OutOfOrderEventError` if `event` is behind the last one seen."""
        if self._last_id is not None:
            if event.block_timestamp < self._last_ts:
                raise OutOfOrderEventError(
                    event.event_id,
                    self._last_id,
                    f"block timestamp {event.block_timestamp} < {self._last_ts}",
                )
            pos = event.position
            if pos is not None and self._last_pos is not None and pos <= self._last_pos:
                raise OutOfOrderEventError(
                    event.event_id,
                    self._last_id,
                    f"position {pos} is not after {self._last_pos}",
                )
        self._remember(event.event_id, event.block_timestamp, event.position)


class ResumeFilter:
    """Skips events already covered by a committed checkpoint.

    With chain positions on both sides, everything at or before the
    checkpoint's position is skipped. Otherwise block timestamps decide:
    earlier events are skipped, later ones pass, and within the checkpoint's
    own timestamp events are skipped up to and including the one whose id
    matches the checkpoint.
    """

    def __init__(self, checkpoint: Checkpoint | None) -> None:
        self._checkpoint = checkpoint
        self._passed = checkpoint is None

    @property
    def waiting(self) -> bool:
        """True while the checkpoint has not been reached or passed."""
        return not self._passed

    def already_committed(self, event: ChainEvent) -> bool:
        cp = self._checkpoint
        if self._passed or cp is None:
            return False
        if cp.position is not None and event.position is not None:
            if event.position <= cp.position:
                return True
            self._passed = True
            return False
        if event.block_timestamp < cp.block_timestamp:
            return True
        if event.block_timestamp > cp.block_timestamp:
            self._passed = True
            return False
        if event.event_id == cp.event_id:
            self._passed = True
        return True
