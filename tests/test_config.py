from __future__ import annotations

from pathlib import Path

import pytest

from payroll_indexer.config import get_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MONGO_DB",
        "MONGO_TLS",
        "INDEXER_BACKEND",
        "INDEXER_AMOUNT_BITS",
        "INDEXER_RECORD_RAW_EVENTS",
        "INDEXER_LOG_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    s = get_settings()
    assert s.mongo_db == "payroll"
    assert s.mongo_tls is False
    assert s.backend == "mongo"
    assert s.amount_bits == 256
    assert s.record_raw_events is True
    assert s.log_path == Path("logs/indexer.log")


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INDEXER_BACKEND", "Memory")
    monkeypatch.setenv("INDEXER_AMOUNT_BITS", "128")
    monkeypatch.setenv("INDEXER_RECORD_RAW_EVENTS", "no")
    monkeypatch.setenv("MONGO_TLS", "true")
    s = get_settings()
    assert s.backend == "memory"
    assert s.amount_bits == 128
    assert s.record_raw_events is False
    assert s.mongo_tls is True


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("INDEXER_BACKEND", "postgres"),
        ("INDEXER_AMOUNT_BITS", "0"),
        ("INDEXER_AMOUNT_BITS", "many"),
        ("INDEXER_RECORD_RAW_EVENTS", "maybe"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        get_settings()
