"""
Counter stores for the booking number allocator.

InMemoryCounterStore → one lock per process, tests / single worker
SqlCounterStore      → single upsert-and-increment statement, safe across
                       workers on PostgreSQL and SQLite (>= 3.35)
"""
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from busplan.errors import CounterPersistenceError
from busplan.models import BookingCounter
from busplan.repository import dialect_insert

logger = logging.getLogger(__name__)


class InMemoryCounterStore:
    def __init__(self, initial: dict | None = None):
        self.counters = dict(initial or {})
        self._lock = threading.Lock()

    def get_and_increment(self, year_month_key: str) -> int:
        with self._lock:
            value = self.counters.get(year_month_key, 0) + 1
            self.counters[year_month_key] = value
            return value


class SqlCounterStore:
    """
    INSERT ... ON CONFLICT (year_month_key)
        DO UPDATE SET last_sequence = last_sequence + 1
    RETURNING last_sequence

    The row lock taken by the upsert serialises concurrent callers for the
    same month. With autocommit (the default) the number is burned even if
    the booking later aborts; autocommit=False leaves the increment in the
    caller's transaction so it commits or rolls back with the booking.
    """

    def __init__(self, session: Session, autocommit: bool = True):
        self.session = session
        self.autocommit = autocommit

    def _insert(self, year_month_key: str):
        try:
            return dialect_insert(self.session, BookingCounter)
        except ValueError as e:
            raise CounterPersistenceError(year_month_key, str(e)) from e

    def get_and_increment(self, year_month_key: str) -> int:
        stmt = self._insert(year_month_key).values(year_month_key=year_month_key, last_sequence=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[BookingCounter.year_month_key],
            set_={"last_sequence": BookingCounter.last_sequence + 1},
        ).returning(BookingCounter.last_sequence)

        try:
            value = self.session.execute(stmt).scalar_one()
            if self.autocommit:
                self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("counter upsert failed for %s: %s", year_month_key, e)
            raise CounterPersistenceError(year_month_key, str(e)) from e
        return value
