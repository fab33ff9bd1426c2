from __future__ import annotations

import threading

import pytest

from payroll_indexer.models import Checkpoint, MonthAggregate, PayeeAggregate
from payroll_indexer.store.memory import InMemoryAggregateStore


def test_load_or_create_does_not_persist() -> None:
    store = InMemoryAggregateStore()
    payee = store.load_or_create_payee("0xAA")
    assert payee.total_paid == 0 and payee.last_paid_at is None
    assert store.get_payee("0xAA") is None

    month = store.load_or_create_month(197001)
    assert month.id == "197001" and month.total_cost == 0
    assert store.get_month(197001) is None


def test_save_upserts_whole_record() -> None:
    store = InMemoryAggregateStore()
    store.save_payee(PayeeAggregate(id="0xaa", total_paid=5, last_paid_at=1, claim_count=1))
    store.save_payee(PayeeAggregate(id="0xAA", total_paid=9, last_paid_at=2, claim_count=2))
    assert store.get_payee("0xaa") == PayeeAggregate(id="0xaa", total_paid=9, last_paid_at=2, claim_count=2)
    assert len(list(store.iter_payees())) == 1


def test_loaded_records_are_copies() -> None:
    store = InMemoryAggregateStore()
    store.save_month(MonthAggregate(id="197001", month=197001, total_cost=10))
    loaded = store.load_or_create_month(197001)
    loaded.total_cost = 99
    assert store.get_month(197001).total_cost == 10  # type: ignore[union-attr]


def test_transaction_commits_on_success() -> None:
    store = InMemoryAggregateStore()
    with store.transaction():
        store.save_payee(PayeeAggregate(id="0x01", total_paid=1))
        # reads inside the unit of work see its own saves
        assert store.get_payee("0x01") is not None
        store.save_checkpoint(Checkpoint(event_id="e1", block_timestamp=0, processed=1))
    assert store.get_payee("0x01") is not None
    assert store.load_checkpoint() == Checkpoint(event_id="e1", block_timestamp=0, processed=1)


def test_transaction_discards_on_error() -> None:
    store = InMemoryAggregateStore()
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.save_payee(PayeeAggregate(id="0x01", total_paid=1))
            store.save_month(MonthAggregate(id="197001", month=197001, total_cost=1))
            raise RuntimeError("boom")
    assert store.get_payee("0x01") is None
    assert store.get_month(197001) is None
    assert store.load_checkpoint() is None


def test_nested_transaction_joins_outer() -> None:
    store = InMemoryAggregateStore()
    with pytest.raises(RuntimeError):
        with store.transaction():
            with store.transaction():
                store.save_payee(PayeeAggregate(id="0x01", total_paid=1))
            raise RuntimeError("outer fails")
    assert store.get_payee("0x01") is None


def test_concurrent_read_modify_write_loses_no_updates() -> None:
    store = InMemoryAggregateStore()

    def bump() -> None:
        for _ in range(200):
            with store.transaction():
                payee = store.load_or_create_payee("0x01")
                payee.total_paid += 1
                store.save_payee(payee)

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.get_payee("0x01").total_paid == 800  # type: ignore[union-attr]
