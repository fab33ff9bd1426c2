"""Command-line interface for running the indexer.

Provides subcommands: `ingest`, `payees`, `months`, and `verify`. Each command
is implemented as a `cmd_*` function that accepts an argparse namespace and
the aggregate store to work against.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable

import pandas as pd

from payroll_indexer.config import BACKENDS, Settings, get_settings
from payroll_indexer.logging_config import configure_logging
from payroll_indexer.aggregate.engine import AggregationEngine
from payroll_indexer.aggregate.indexer import Indexer
from payroll_indexer.aggregate.reconcile import reconcile
from payroll_indexer.ingest.read_events import read_events_csv
from payroll_indexer.ingest.source import iter_events
from payroll_indexer.models import ClaimEvent
from payroll_indexer.store.base import AggregateStore
from payroll_indexer.store.memory import InMemoryAggregateStore
from payroll_indexer.store.mongo import MongoAggregateStore

log = logging.getLogger(__name__)


# --------------------------------------------------
# Helpers
# --------------------------------------------------
def build_store(settings: Settings, backend: str | None = None) -> tuple[AggregateStore, Callable[[], None]]:
    """Return the configured store and a callable that releases it.

    Args:
        settings: Loaded settings.
        backend: Optional override of `settings.backend`.
    """
    chosen = backend or settings.backend
    if chosen == "memory":
        log.warning("Using in-memory store; aggregates are discarded on exit.")
        return InMemoryAggregateStore(), lambda: None

    store = MongoAggregateStore.from_settings(settings)
    store.ensure_indexes()
    return store, store.close


def _print_frame(rows: list[dict[str, Any]], empty_message: str) -> None:
    if not rows:
        print(empty_message)
        return
    print(pd.DataFrame(rows).to_string(index=False))


# --------------------------------------------------
# INGEST
# --------------------------------------------------
def cmd_ingest(args: argparse.Namespace, store: AggregateStore, settings: Settings) -> int:
    """Consume a CSV event export into the store.

    Args:
        args: argparse namespace with `events`, `chunksize`, `skip_malformed`,
            `no_resume`.
    """
    engine = AggregationEngine(store, amount_bits=settings.amount_bits)
    indexer = Indexer(store, engine, record_raw_events=settings.record_raw_events)

    stats = indexer.run(
        read_events_csv(args.events, chunksize=args.chunksize),
        on_malformed="skip" if args.skip_malformed else "raise",
        resume=not args.no_resume,
    )
    for kind, count in sorted(stats.by_kind.items()):
        log.info("  %s: %d", kind, count)
    return 0


# --------------------------------------------------
# REPORTS
# --------------------------------------------------
def cmd_payees(args: argparse.Namespace, store: AggregateStore, _: Settings) -> int:
    """Print payee aggregates, largest `total_paid` first."""
    payees = sorted(store.iter_payees(), key=lambda p: p.total_paid, reverse=True)
    if args.top_n:
        payees = payees[: args.top_n]
    _print_frame(
        [
            {
                "payee": p.id,
                "total_paid": str(p.total_paid),
                "last_paid_at": p.last_paid_at,
                "claims": p.claim_count,
            }
            for p in payees
        ],
        "No payees indexed yet.",
    )
    return 0


def cmd_months(_: argparse.Namespace, store: AggregateStore, __: Settings) -> int:
    """Print month aggregates in bucket order."""
    _print_frame(
        [{"month": m.id, "total_cost": str(m.total_cost)} for m in store.iter_months()],
        "No months indexed yet.",
    )
    return 0


def cmd_verify(args: argparse.Namespace, store: AggregateStore, _: Settings) -> int:
    """Recompute aggregates from a CSV export and compare them with the store.

    Returns exit status 1 when any mismatch is found.
    """
    claims = [
        e for e in iter_events(read_events_csv(args.events, chunksize=args.chunksize))
        if isinstance(e, ClaimEvent)
    ]
    mismatches = reconcile(store, claims)
    for m in mismatches:
        log.error(
            "%s %s: %s expected=%s actual=%s",
            m.entity,
            m.key,
            m.field,
            m.expected,
            m.actual,
        )
    return 1 if mismatches else 0


COMMANDS: dict[str, Callable[[argparse.Namespace, AggregateStore, Settings], int]] = {
    "ingest": cmd_ingest,
    "payees": cmd_payees,
    "months": cmd_months,
    "verify": cmd_verify,
}


# --------------------------------------------------
# CLI
# --------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser for the CLI.

    Returns:
        Configured argparse.ArgumentParser instance.
    """
    p = argparse.ArgumentParser(prog="payroll-indexer")
    p.add_argument("--backend", choices=BACKENDS, default=None)
    p.add_argument("--log-level", default="INFO")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ingest = sub.add_parser("ingest")
    p_ingest.add_argument("events", type=Path)
    p_ingest.add_argument("--chunksize", type=int, default=10_000)
    p_ingest.add_argument("--skip-malformed", action="store_true")
    p_ingest.add_argument("--no-resume", action="store_true")

    p_payees = sub.add_parser("payees")
    p_payees.add_argument("--top-n", type=int, default=0)

    sub.add_parser("months")

    p_verify = sub.add_parser("verify")
    p_verify.add_argument("events", type=Path)
    p_verify.add_argument("--chunksize", type=int, default=10_000)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entry point: parse args, configure logging and dispatch commands."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_path, getattr(logging, args.log_level.upper(), logging.INFO))

    store, close = build_store(settings, args.backend)
    try:
        return COMMANDS[args.cmd](args, store, settings)
    finally:
        close()


if __name__ == "__main__":
    raise SystemExit(main())
