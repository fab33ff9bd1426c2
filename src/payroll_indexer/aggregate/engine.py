"""Aggregation engine: folds claim events into Payee and Month aggregates.

For each `PayrollClaimed` event the engine, inside one store unit of work:

1. loads (or creates) the payee aggregate and adds the amount to `total_paid`,
2. sets `last_paid_at` to the event's block timestamp and saves the payee,
3. loads (or creates) the month aggregate for the event's bucket, adds the
   amount to `total_cost` and saves it.

The engine holds no aggregate state between events; it re-reads the store
every time. It does not deduplicate: handling the same event twice counts it
twice. Events must be handled in source order so `last_paid_at` tracks the
latest claim.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from payroll_indexer.aggregate.bucketing import bucket_key
from payroll_indexer.errors import AmountOverflowError
from payroll_indexer.models import ClaimEvent, parse_claim
from payroll_indexer.store.base import AggregateStore

log = logging.getLogger(__name__)

DEFAULT_AMOUNT_BITS = 256


def checked_add(current: int, amount: int, limit: int, entity: str, bits: int) -> int:
    """Return `current + amount`, refusing results above `limit`.

    Raises:
        AmountOverflowError: if the sum does not fit.
    """
    total = current + amount
    if total > limit:
        raise AmountOverflowError(entity, current, amount, bits)
    return total


class AggregationEngine:
    """Applies claim events to an injected `AggregateStore`.

    Args:
        store: Aggregate store the projections live in.
        bucketer: Maps a block timestamp to a month bucket key.
        amount_bits: Unsigned width every running sum must fit in.
    """

    def __init__(
        self,
        store: AggregateStore,
        bucketer: Callable[[int], int] = bucket_key,
        amount_bits: int = DEFAULT_AMOUNT_BITS,
    ) -> None:
        if amount_bits <= 0:
            raise ValueError("amount_bits must be positive")
        self._store = store
        self._bucketer = bucketer
        self._bits = amount_bits
        self._limit = 2**amount_bits - 1

    @property
    def store(self) -> AggregateStore:
        return self._store

    def handle_claim(self, event: ClaimEvent | Mapping[str, Any]) -> None:
        """Fold one claim event into the payee and month aggregates.

        Args:
            event: A validated `ClaimEvent` or a raw record to validate.

        Raises:
            MalformedEventError: if a raw record fails validation (nothing is
                read or written in that case).
            AmountOverflowError: if either sum would exceed `amount_bits`.
            StoreError: if the store fails; neither aggregate is committed.
        """
        claim = parse_claim(event)
        key = self._bucketer(claim.block_timestamp)

        with self._store.transaction():
            payee = self._store.load_or_create_payee(claim.payee_id)
            payee.total_paid = checked_add(
                payee.total_paid, claim.amount, self._limit, f"payee {payee.id}", self._bits
            )
            payee.last_paid_at = claim.block_timestamp
            payee.claim_count += 1
            self._store.save_payee(payee)

            month = self._store.load_or_create_month(key)
            month.total_cost = checked_add(
                month.total_cost, claim.amount, self._limit, f"month {month.id}", self._bits
            )
            self._store.save_month(month)

        log.debug(
            "Applied claim %s: payee=%s amount=%d month=%s",
            claim.event_id,
            claim.payee_id,
            claim.amount,
            key,
        )
