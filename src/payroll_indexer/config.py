"""Configuration helpers and Settings container.

This module provides a small `Settings` dataclass and `get_settings` which
reads the indexer's environment variables and validates the ones whose
values are constrained (backend name, amount width, boolean flags).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

BACKENDS = ("mongo", "memory")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Container for indexer configuration read from the environment.

    Attributes:
        mongo_uri: MongoDB connection URI.
        mongo_db: Target MongoDB database name.
        mongo_tls: Whether to connect with TLS (using the certifi CA bundle).
        backend: Aggregate store backend, one of `BACKENDS`.
        amount_bits: Width of the unsigned integer that sums must fit in.
        record_raw_events: Whether every consumed event is kept in the raw log.
        log_path: File the CLI writes its log to.
    """
    mongo_uri: str
    mongo_db: str
    mongo_tls: bool
    backend: str
    amount_bits: int
    record_raw_events: bool
    log_path: Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise RuntimeError(f"{name} must be a boolean (true/false), got {raw!r}.")


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if `INDEXER_BACKEND`, `INDEXER_AMOUNT_BITS` or one of the
            boolean flags holds an unusable value.
    """
    mongo_uri = os.getenv(
        "MONGO_URI",
        "mongodb://localhost:27017,localhost:27018,localhost:27019/?replicaSet=rs0",
    )
    mongo_db = os.getenv("MONGO_DB", "payroll")
    backend = os.getenv("INDEXER_BACKEND", "mongo").strip().lower()
    raw_bits = os.getenv("INDEXER_AMOUNT_BITS", "256").strip()
    log_path = Path(os.getenv("INDEXER_LOG_PATH", "logs/indexer.log"))

    if backend not in BACKENDS:
        raise RuntimeError(
            f"INDEXER_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}."
        )

    try:
        amount_bits = int(raw_bits)
    except ValueError:
        amount_bits = 0
    if amount_bits <= 0:
        raise RuntimeError(
            f"INDEXER_AMOUNT_BITS must be a positive integer, got {raw_bits!r}."
        )

    return Settings(
        mongo_uri=mongo_uri,
        mongo_db=mongo_db,
        mongo_tls=_env_bool("MONGO_TLS", False),
        backend=backend,
        amount_bits=amount_bits,
        record_raw_events=_env_bool("INDEXER_RECORD_RAW_EVENTS", True),
        log_path=log_path,
    )
