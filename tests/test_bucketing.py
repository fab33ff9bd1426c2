from __future__ import annotations

import random

import pytest

from payroll_indexer.aggregate.bucketing import (
    SECONDS_PER_MONTH,
    SECONDS_PER_YEAR,
    bucket_key,
)


def test_epoch_maps_to_first_bucket() -> None:
    assert bucket_key(0) == 197001


def test_month_and_year_boundaries() -> None:
    assert bucket_key(SECONDS_PER_MONTH - 1) == 197001
    assert bucket_key(SECONDS_PER_MONTH) == 197002
    assert bucket_key(SECONDS_PER_YEAR) == 197101
    assert bucket_key(SECONDS_PER_YEAR + 2 * SECONDS_PER_MONTH) == 197103


def test_last_days_of_year_fall_into_month_13() -> None:
    assert bucket_key(12 * SECONDS_PER_MONTH) == 197013
    assert bucket_key(SECONDS_PER_YEAR - 1) == 197013


def test_bucket_key_is_monotonic() -> None:
    rng = random.Random(7)
    stamps = sorted(rng.randrange(0, 2_000_000_000) for _ in range(2000))
    keys = [bucket_key(t) for t in stamps]
    assert keys == sorted(keys)


def test_bucket_key_is_stable() -> None:
    assert bucket_key(1_700_000_000) == bucket_key(1_700_000_000)
    assert bucket_key(1_700_000_000) == 202312


@pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
def test_bucket_key_rejects_non_timestamps(bad: object) -> None:
    with pytest.raises(ValueError):
        bucket_key(bad)  # type: ignore[arg-type]
