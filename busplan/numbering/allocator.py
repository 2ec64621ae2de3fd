"""
Booking number allocator — ER-YYMM-NNNN.

The sequence is a per-month counter held by an injected store whose
get_and_increment() must be atomic. Gaps (aborted bookings) are fine,
duplicates are not.
"""
import logging
import os
import re
from datetime import date
from typing import Protocol

from busplan.errors import CounterPersistenceError

logger = logging.getLogger(__name__)

BOOKING_NUMBER_PREFIX = os.getenv("BOOKING_NUMBER_PREFIX", "ER")

_KEY_RE = re.compile(r"^\d{2}(0[1-9]|1[0-2])$")
_PREFIX_RE = re.compile(r"^[A-Z]+$")
_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<key>\d{4})-(?P<seq>\d{4,})$")


class CounterStore(Protocol):
    def get_and_increment(self, year_month_key: str) -> int:
        ...


def year_month_key(now: date) -> str:
    """2025-06-14 → '2506'"""
    return f"{now.year % 100:02d}{now.month:02d}"


def _check_prefix(prefix: str):
    # parse_booking_number must be able to read back what we format
    if not _PREFIX_RE.match(prefix or ""):
        raise ValueError(f"Bad booking number prefix: {prefix!r} (expected A-Z letters)")


def format_booking_number(key: str, sequence: int,
                          prefix: str = BOOKING_NUMBER_PREFIX) -> str:
    _check_prefix(prefix)
    return f"{prefix}-{key}-{sequence:04d}"


def parse_booking_number(number: str) -> tuple[str, str, int]:
    """'ER-2506-0042' → ('ER', '2506', 42)"""
    m = _NUMBER_RE.match(number or "")
    if not m:
        raise ValueError(f"Not a booking number: {number!r}")
    return m["prefix"], m["key"], int(m["seq"])


def next_booking_number(key: str, counter_store: CounterStore,
                        prefix: str = BOOKING_NUMBER_PREFIX) -> str:
    if not _KEY_RE.match(key or ""):
        raise ValueError(f"Bad year-month key: {key!r} (expected YYMM)")
    _check_prefix(prefix)

    try:
        sequence = counter_store.get_and_increment(key)
    except CounterPersistenceError:
        raise
    except Exception as e:
        logger.error("counter store failed for %s: %s", key, e)
        raise CounterPersistenceError(key, str(e)) from e

    if not isinstance(sequence, int) or sequence < 1:
        raise CounterPersistenceError(key, f"store returned invalid sequence {sequence!r}")

    number = format_booking_number(key, sequence, prefix)
    logger.debug("allocated %s", number)
    return number
