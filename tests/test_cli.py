from __future__ import annotations

from pathlib import Path

import pytest

from payroll_indexer import cli
from payroll_indexer.cli import main
from payroll_indexer.store.memory import InMemoryAggregateStore


@pytest.fixture
def events_csv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("INDEXER_LOG_PATH", str(tmp_path / "indexer.log"))
    path = tmp_path / "events.csv"
    path.write_text(
        "event_id,payee_id,amount,block_timestamp\n"
        "e1,0xAA,1000,0\n"
        "e2,0xAA,500,2592000\n"
        "e3,0xBB,200,2592000\n",
        encoding="utf-8",
    )
    return path


def test_ingest_with_memory_backend(events_csv: Path) -> None:
    assert main(["--backend", "memory", "ingest", str(events_csv)]) == 0


def test_reports_on_empty_memory_store(events_csv: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--backend", "memory", "payees"]) == 0
    assert main(["--backend", "memory", "months"]) == 0
    out = capsys.readouterr().out
    assert "No payees indexed yet." in out
    assert "No months indexed yet." in out


def test_verify_against_empty_store_fails(events_csv: Path) -> None:
    assert main(["--backend", "memory", "verify", str(events_csv)]) == 1


def test_ingest_then_report_and_verify_share_one_store(
    events_csv: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    store = InMemoryAggregateStore()
    monkeypatch.setattr(cli, "build_store", lambda settings, backend=None: (store, lambda: None))

    assert main(["--backend", "memory", "ingest", str(events_csv)]) == 0
    assert main(["--backend", "memory", "verify", str(events_csv)]) == 0
    capsys.readouterr()

    assert main(["--backend", "memory", "payees"]) == 0
    payees = capsys.readouterr().out
    assert "0xaa" in payees and "1500" in payees
    assert "0xbb" in payees and "200" in payees

    assert main(["--backend", "memory", "months"]) == 0
    months = capsys.readouterr().out
    assert "197001" in months and "1000" in months
    assert "197002" in months and "700" in months
