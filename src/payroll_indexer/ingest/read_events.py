"""Read payroll contract events from CSV exports.

Exports are read in chunks with pandas, every column as text, so uint256
amounts never pass through a float. Column names may use either the
snake_case field names or the contract's camelCase parameter names.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

import pandas as pd

log = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "id": "event_id",
    "eventId": "event_id",
    "payeeId": "payee_id",
    "employee": "payee_id",
    "payrollId": "payroll_id",
    "totalAmount": "total_amount",
    "employeeCount": "employee_count",
    "previousAdminRole": "previous_admin_role",
    "newAdminRole": "new_admin_role",
    "blockNumber": "block_number",
    "blockTimestamp": "block_timestamp",
    "transactionHash": "transaction_hash",
    "logIndex": "log_index",
}


def read_events_csv(path: Path, chunksize: int = 10_000) -> Iterator[dict[str, Any]]:
    """Yield one raw event record per CSV row, in file order.

    Empty cells are dropped so optional fields fall back to their defaults.
    A zero-byte file yields nothing.

    Args:
        path: CSV file with a header row.
        chunksize: Number of rows parsed per pandas chunk.

    Yields:
        Dictionaries of column name to stripped cell text.
    """
    log.info("Reading events from %s", path)
    rows = 0
    try:
        reader = pd.read_csv(path, dtype=str, keep_default_na=False, chunksize=chunksize)
    except pd.errors.EmptyDataError:
        log.warning("Event export %s is empty; nothing to read", path)
        return
    with reader:
        for chunk in reader:
            chunk = chunk.rename(columns=COLUMN_ALIASES)
            for rec in chunk.to_dict(orient="records"):
                rows += 1
                yield {
                    str(k): v.strip()
                    for k, v in rec.items()
                    if isinstance(v, str) and v.strip()
                }
    log.info("Read %d event rows from %s", rows, path)
