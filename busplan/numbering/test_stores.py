"""
SQL counter store against SQLite (same upsert statement as PostgreSQL).
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from busplan.errors import CounterPersistenceError
from busplan.models import Base, BookingCounter
from busplan.numbering.allocator import next_booking_number
from busplan.numbering.stores import SqlCounterStore


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False},
                           poolclass=StaticPool)
    Base.metadata.create_all(engine)
    db = sessionmaker(bind=engine)()
    yield db
    db.close()
    engine.dispose()


def test_first_call_creates_counter(session):
    store = SqlCounterStore(session)
    assert store.get_and_increment("2506") == 1
    assert store.get_and_increment("2506") == 2
    assert store.get_and_increment("2507") == 1
    assert session.get(BookingCounter, "2506").last_sequence == 2


def test_allocator_over_sql_store(session):
    store = SqlCounterStore(session)
    assert next_booking_number("2506", store) == "ER-2506-0001"
    assert next_booking_number("2506", store) == "ER-2506-0002"


def test_increment_can_join_the_callers_transaction(session):
    store = SqlCounterStore(session, autocommit=False)
    assert store.get_and_increment("2506") == 1
    session.rollback()

    assert session.get(BookingCounter, "2506") is None
    assert SqlCounterStore(session).get_and_increment("2506") == 1


def test_missing_table_raises_counter_persistence_error(session):
    session.execute(text("DROP TABLE booking_counters"))
    session.commit()

    with pytest.raises(CounterPersistenceError) as exc:
        next_booking_number("2506", SqlCounterStore(session))
    assert exc.value.year_month_key == "2506"


def test_parallel_workers_never_share_a_number(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'counters.db'}",
                           connect_args={"timeout": 30, "check_same_thread": False})
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    def mint(_):
        db = Session()
        try:
            return [next_booking_number("2506", SqlCounterStore(db)) for _ in range(10)]
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        numbers = [n for batch in pool.map(mint, range(4)) for n in batch]
    engine.dispose()

    assert len(numbers) == 40
    assert len(set(numbers)) == 40
