"""Month bucketing for block timestamps.

Buckets use a fixed-epoch approximation rather than the Gregorian calendar:
every year is 365 days (31,536,000 s) and every month 30 days (2,592,000 s),
counted from 1970-01-01T00:00:00Z. The key is

    (1970 + ts // SECONDS_PER_YEAR) * 100 + (ts % SECONDS_PER_YEAR) // SECONDS_PER_MONTH + 1

so timestamp 0 maps to 197001. Twelve 30-day months leave five days at the end
of each approximate year; those fall into month 13 (e.g. 197013). Keys are
monotonic in the timestamp and never compare equal to calendar-correct month
keys, so results from the two schemes must not be mixed.
"""

from __future__ import annotations

EPOCH_YEAR = 1970
SECONDS_PER_YEAR = 31_536_000
SECONDS_PER_MONTH = 2_592_000


def bucket_key(timestamp: int) -> int:
    """Return the `YYYYMM` month bucket for a block timestamp.

    Args:
        timestamp: Unsigned seconds since the Unix epoch.

    Returns:
        Integer bucket key, e.g. 197001 for timestamp 0.

    Raises:
        ValueError: if `timestamp` is negative or not an integer.
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ValueError(f"timestamp must be an integer, got {timestamp!r}")
    if timestamp < 0:
        raise ValueError(f"timestamp must be non-negative, got {timestamp}")

    years, within_year = divmod(timestamp, SECONDS_PER_YEAR)
    month = within_year // SECONDS_PER_MONTH + 1
    return (EPOCH_YEAR + years) * 100 + month
