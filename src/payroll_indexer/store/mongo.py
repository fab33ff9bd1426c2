"""MongoDB-backed aggregate store.

Module notes:
- Aggregates are keyed by `_id` (payee address / `YYYYMM` month id) and
  written with whole-document upserts.
- Token amounts are stored as decimal strings: BSON integers are 64-bit and
  uint256 sums do not fit.
- A unit of work is a client-session transaction, so the deployment must be a
  replica set. Write conflicts abort the transaction and surface as
  `StoreError`; the caller retries the event from the same position.
- The active session is held per thread, so a unit of work on one thread never
  captures writes issued from another.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from pymongo import ASCENDING, MongoClient
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

from payroll_indexer.config import Settings
from payroll_indexer.db import (
    CHECKPOINTS,
    MONTHS,
    PAYEES,
    RAW_EVENTS,
    ensure_indexes,
    get_client,
    get_db,
)
from payroll_indexer.errors import StoreError
from payroll_indexer.models import (
    ChainEvent,
    Checkpoint,
    MonthAggregate,
    PayeeAggregate,
    normalize_hex,
    parse_event,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHECKPOINT_ID = "payroll_manager"


# -------------------------
# Document mapping
# -------------------------
def payee_to_doc(payee: PayeeAggregate) -> dict[str, Any]:
    return {
        "_id": payee.id,
        "wallet": payee.id,
        "total_paid": str(payee.total_paid),
        "last_paid_at": payee.last_paid_at,
        "claim_count": payee.claim_count,
    }


def payee_from_doc(doc: dict[str, Any]) -> PayeeAggregate:
    return PayeeAggregate(
        id=doc["_id"],
        total_paid=int(doc["total_paid"]),
        last_paid_at=doc.get("last_paid_at"),
        claim_count=int(doc.get("claim_count", 0)),
    )


def month_to_doc(month: MonthAggregate) -> dict[str, Any]:
    return {
        "_id": month.id,
        "month": month.month,
        "total_cost": str(month.total_cost),
    }


def month_from_doc(doc: dict[str, Any]) -> MonthAggregate:
    return MonthAggregate(
        id=doc["_id"],
        month=int(doc["month"]),
        total_cost=int(doc["total_cost"]),
    )


def raw_event_to_doc(event: ChainEvent) -> dict[str, Any]:
    doc = event.model_dump(mode="python")
    for name in event.amount_fields:
        doc[name] = str(doc[name])
    doc["_id"] = event.event_id
    return doc


class MongoAggregateStore:
    """`AggregateStore` persisting projections in MongoDB collections."""

    def __init__(
        self,
        client: MongoClient[dict[str, Any]],
        db_name: str,
        checkpoint_id: str = DEFAULT_CHECKPOINT_ID,
    ) -> None:
        self._client = client
        self._db = get_db(client, db_name)
        self._checkpoint_id = checkpoint_id
        self._local = threading.local()

    @property
    def _session(self) -> ClientSession | None:
        return getattr(self._local, "session", None)

    @_session.setter
    def _session(self, session: ClientSession | None) -> None:
        self._local.session = session

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoAggregateStore":
        """Build a store from `Settings` (URI, database name, TLS flag)."""
        client = get_client(settings.mongo_uri, tls=settings.mongo_tls)
        return cls(client, settings.mongo_db)

    def close(self) -> None:
        self._client.close()

    def ensure_indexes(self) -> None:
        self._run("create indexes", lambda: ensure_indexes(self._db))

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except PyMongoError as e:
            log.error("Mongo %s failed: %s", operation, e)
            raise StoreError(operation, str(e)) from e

    # -------------------------
    # Units of work
    # -------------------------
    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._session is not None:
            yield
            return

        try:
            with self._client.start_session() as session:
                with session.start_transaction():
                    self._session = session
                    try:
                        yield
                    finally:
                        self._session = None
        except PyMongoError as e:
            log.error("Mongo transaction failed: %s", e)
            raise StoreError("transaction", str(e)) from e

    # -------------------------
    # Payees
    # -------------------------
    def get_payee(self, payee_id: str) -> PayeeAggregate | None:
        key = normalize_hex(payee_id)
        doc = self._run(
            "load payee",
            lambda: self._db[PAYEES].find_one({"_id": key}, session=self._session),
        )
        return payee_from_doc(doc) if doc is not None else None

    def load_or_create_payee(self, payee_id: str) -> PayeeAggregate:
        found = self.get_payee(payee_id)
        if found is None:
            return PayeeAggregate(id=payee_id)
        return found

    def save_payee(self, payee: PayeeAggregate) -> None:
        doc = payee_to_doc(payee)
        self._run(
            "save payee",
            lambda: self._db[PAYEES].replace_one(
                {"_id": doc["_id"]}, doc, upsert=True, session=self._session
            ),
        )

    def iter_payees(self) -> Iterator[PayeeAggregate]:
        docs = self._run(
            "list payees",
            lambda: list(self._db[PAYEES].find({}).sort("_id", ASCENDING)),
        )
        return iter(payee_from_doc(d) for d in docs)

    # -------------------------
    # Months
    # -------------------------
    def get_month(self, key: int) -> MonthAggregate | None:
        doc = self._run(
            "load month",
            lambda: self._db[MONTHS].find_one({"_id": str(key)}, session=self._session),
        )
        return month_from_doc(doc) if doc is not None else None

    def load_or_create_month(self, key: int) -> MonthAggregate:
        found = self.get_month(key)
        if found is None:
            return MonthAggregate(id=str(key), month=key)
        return found

    def save_month(self, month: MonthAggregate) -> None:
        doc = month_to_doc(month)
        self._run(
            "save month",
            lambda: self._db[MONTHS].replace_one(
                {"_id": doc["_id"]}, doc, upsert=True, session=self._session
            ),
        )

    def iter_months(self) -> Iterator[MonthAggregate]:
        docs = self._run(
            "list months",
            lambda: list(self._db[MONTHS].find({}).sort("month", ASCENDING)),
        )
        return iter(month_from_doc(d) for d in docs)

    # -------------------------
    # Raw events & checkpoint
    # -------------------------
    def save_raw_event(self, event: ChainEvent) -> None:
        doc = raw_event_to_doc(event)
        self._run(
            "save raw event",
            lambda: self._db[RAW_EVENTS].replace_one(
                {"_id": doc["_id"]}, doc, upsert=True, session=self._session
            ),
        )

    def iter_raw_events(self, kind: str | None = None) -> Iterator[ChainEvent]:
        query = {"kind": kind} if kind else {}
        docs = self._run(
            "list raw events",
            lambda: list(self._db[RAW_EVENTS].find(query).sort("block_timestamp", ASCENDING)),
        )
        return iter(parse_event({k: v for k, v in d.items() if k != "_id"}) for d in docs)

    def load_checkpoint(self) -> Checkpoint | None:
        doc = self._run(
            "load checkpoint",
            lambda: self._db[CHECKPOINTS].find_one(
                {"_id": self._checkpoint_id}, session=self._session
            ),
        )
        if doc is None:
            return None
        doc.pop("_id", None)
        return Checkpoint.model_validate(doc)

    def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        doc = {"_id": self._checkpoint_id, **checkpoint.model_dump()}
        self._run(
            "save checkpoint",
            lambda: self._db[CHECKPOINTS].replace_one(
                {"_id": self._checkpoint_id}, doc, upsert=True, session=self._session
            ),
        )
