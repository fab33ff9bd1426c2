from __future__ import annotations

from payroll_indexer.aggregate.engine import AggregationEngine
from payroll_indexer.aggregate.reconcile import Mismatch, expected_aggregates, reconcile
from payroll_indexer.models import UINT256_MAX, ClaimEvent, PayeeAggregate
from payroll_indexer.store.memory import InMemoryAggregateStore


def _claims() -> list[ClaimEvent]:
    big = UINT256_MAX // 4
    return [
        ClaimEvent(event_id="1", payee_id="0x01", amount=big, block_timestamp=0),
        ClaimEvent(event_id="2", payee_id="0x01", amount=big, block_timestamp=2_592_000),
        ClaimEvent(event_id="3", payee_id="0x02", amount=7, block_timestamp=2_592_001),
    ]


def test_expected_aggregates_sum_exactly() -> None:
    payees, months = expected_aggregates(_claims())
    big = UINT256_MAX // 4
    assert int(payees.loc["0x01", "total_paid"]) == 2 * big
    assert int(payees.loc["0x01", "last_paid_at"]) == 2_592_000
    assert int(payees.loc["0x02", "claim_count"]) == 1
    assert int(months.loc[197002, "total_cost"]) == big + 7


def test_expected_aggregates_of_nothing_is_empty() -> None:
    payees, months = expected_aggregates([])
    assert payees.empty and months.empty


def test_reconcile_agrees_with_engine() -> None:
    store = InMemoryAggregateStore()
    engine = AggregationEngine(store)
    for c in _claims():
        engine.handle_claim(c)
    assert reconcile(store, _claims()) == []


def test_reconcile_reports_drift_and_strays() -> None:
    store = InMemoryAggregateStore()
    engine = AggregationEngine(store)
    for c in _claims():
        engine.handle_claim(c)
    store.save_payee(PayeeAggregate(id="0x02", total_paid=8, last_paid_at=2_592_001, claim_count=1))
    store.save_payee(PayeeAggregate(id="0x03", total_paid=1, last_paid_at=5, claim_count=1))

    mismatches = reconcile(store, _claims())
    assert Mismatch("payee", "0x02", "total_paid", 7, 8) in mismatches
    assert Mismatch("payee", "0x03", "total_paid", 0, 1) in mismatches
    assert len(mismatches) == 2
