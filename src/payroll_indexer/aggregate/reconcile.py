"""Batch reconciliation of stored aggregates against an event export.

Expected aggregates are recomputed from scratch with pandas group-bys and
compared field by field with what the store holds. Amount columns are kept as
Python integers (object dtype) so sums stay exact at uint256 scale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import pandas as pd

from payroll_indexer.aggregate.bucketing import bucket_key
from payroll_indexer.models import ClaimEvent
from payroll_indexer.store.base import AggregateStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mismatch:
    """One field whose stored value differs from the recomputed one."""
    entity: str
    key: str
    field: str
    expected: Any
    actual: Any


def _exact_sum(values: pd.Series) -> int:
    return sum((int(v) for v in values.tolist()), 0)


def expected_aggregates(
    claims: Iterable[ClaimEvent],
    bucketer: Callable[[int], int] = bucket_key,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Recompute payee and month aggregates from an ordered claim sequence.

    Args:
        claims: Claim events in chain order.
        bucketer: Month bucketing function.

    Returns:
        `(payees, months)` DataFrames. `payees` is indexed by `payee_id` with
        columns `total_paid`, `last_paid_at`, `claim_count`; `months` is
        indexed by `month` with column `total_cost`.
    """
    rows = [
        {
            "payee_id": c.payee_id,
            "amount": c.amount,
            "block_timestamp": c.block_timestamp,
            "month": bucketer(c.block_timestamp),
        }
        for c in claims
    ]
    if not rows:
        payees = pd.DataFrame(columns=["total_paid", "last_paid_at", "claim_count"])
        payees.index.name = "payee_id"
        months = pd.DataFrame(columns=["total_cost"])
        months.index.name = "month"
        return payees, months

    df = pd.DataFrame(rows)
    df["amount"] = df["amount"].astype(object)

    payees = df.groupby("payee_id", sort=True).agg(
        total_paid=("amount", _exact_sum),
        last_paid_at=("block_timestamp", "last"),
        claim_count=("amount", "size"),
    )
    months = df.groupby("month", sort=True).agg(total_cost=("amount", _exact_sum))
    return payees, months


def reconcile(
    store: AggregateStore,
    claims: Iterable[ClaimEvent],
    bucketer: Callable[[int], int] = bucket_key,
) -> list[Mismatch]:
    """Compare the store's aggregates with ones recomputed from `claims`.

    Aggregates present in the store but absent from `claims` are reported with
    an expected value of 0.

    Returns:
        List of mismatches; empty when the store agrees with the events.
    """
    payees, months = expected_aggregates(claims, bucketer)
    out: list[Mismatch] = []

    stored_payees = {p.id: p for p in store.iter_payees()}
    for payee_id, row in payees.iterrows():
        stored = stored_payees.pop(str(payee_id), None)
        expected = {
            "total_paid": int(row["total_paid"]),
            "last_paid_at": int(row["last_paid_at"]),
            "claim_count": int(row["claim_count"]),
        }
        for name, value in expected.items():
            actual = getattr(stored, name) if stored is not None else None
            if actual != value:
                out.append(Mismatch("payee", str(payee_id), name, value, actual))
    for payee_id, stored in stored_payees.items():
        out.append(Mismatch("payee", payee_id, "total_paid", 0, stored.total_paid))

    stored_months = {m.month: m for m in store.iter_months()}
    for month, row in months.iterrows():
        stored_month = stored_months.pop(int(month), None)
        value = int(row["total_cost"])
        actual = stored_month.total_cost if stored_month is not None else None
        if actual != value:
            out.append(Mismatch("month", str(month), "total_cost", value, actual))
    for month, stored_month in stored_months.items():
        out.append(Mismatch("month", str(month), "total_cost", 0, stored_month.total_cost))

    if out:
        log.warning("Reconciliation found %d mismatches", len(out))
    else:
        log.info(
            "Reconciliation OK: %d payees, %d months",
            len(payees),
            len(months),
        )
    return out
