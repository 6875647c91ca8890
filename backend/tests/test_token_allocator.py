"""Tests for daily order token allocation."""

import threading
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from canteen.db.base import Base
from canteen.db.session import build_engine
from canteen.models import OrderCounter, Vendor
from canteen.services.token_allocator import (
    TokenScope,
    allocate,
    allocate_token,
    format_token,
)

DAY = date(2025, 9, 5)


class TestFormatToken:
    def test_wallet_token_is_two_digits(self):
        assert format_token(DAY, 2) == "05_09_2025_02"

    def test_gateway_token_is_three_digits(self):
        assert format_token(DAY, 7, width=3) == "05_09_2025_007"

    def test_counter_wider_than_padding(self):
        assert format_token(date(2026, 1, 31), 123) == "31_01_2026_123"


class TestAllocate:
    def test_counts_up_per_day(self, db_session):
        scope = TokenScope(DAY)
        assert [allocate(db_session, scope) for _ in range(3)] == [1, 2, 3]
        db_session.commit()

        assert db_session.scalar(select(OrderCounter.counter).where(OrderCounter.order_date == DAY)) == 3

    def test_days_are_independent(self, db_session):
        allocate(db_session, TokenScope(DAY))
        allocate(db_session, TokenScope(DAY))
        assert allocate(db_session, TokenScope(date(2025, 9, 6))) == 1

    def test_vendor_scopes_are_independent(self, db_session, cafe, nescafe):
        assert allocate_token(db_session, TokenScope(DAY, cafe.id)) == ("05_09_2025_001", 1)
        assert allocate_token(db_session, TokenScope(DAY, cafe.id)) == ("05_09_2025_002", 2)
        assert allocate_token(db_session, TokenScope(DAY, nescafe.id)) == ("05_09_2025_001", 1)
        # The wallet counter is separate from every outlet counter
        assert allocate_token(db_session, TokenScope(DAY)) == ("05_09_2025_01", 1)

    def test_rollback_releases_the_number(self, db_session):
        allocate(db_session, TokenScope(DAY))
        db_session.rollback()
        assert allocate(db_session, TokenScope(DAY)) == 1

    def test_scope_keys(self):
        assert TokenScope(DAY).key == "wallet"
        assert TokenScope(DAY, 4).key == "vendor:4"


class TestConcurrentAllocation:
    """Simultaneous allocations on a shared file database never repeat a value."""

    def _run(self, engine, scope, workers):
        results, errors = [], []
        barrier = threading.Barrier(workers)

        def worker():
            session = Session(engine)
            try:
                barrier.wait()
                value = allocate(session, scope)
                session.commit()
                results.append(value)
            except Exception as e:  # collected and asserted on below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_date_scope(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'tokens.db'}")
        Base.metadata.create_all(bind=engine)
        try:
            results, errors = self._run(engine, TokenScope(DAY), workers=12)
        finally:
            engine.dispose()

        assert errors == []
        assert sorted(results) == list(range(1, 13))

    def test_vendor_scope(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'vendor_tokens.db'}")
        Base.metadata.create_all(bind=engine)
        with Session(engine) as session:
            vendor = Vendor(outlet_name="Brio")
            session.add(vendor)
            session.commit()
            vendor_id = vendor.id
        try:
            results, errors = self._run(engine, TokenScope(DAY, vendor_id), workers=8)
        finally:
            engine.dispose()

        assert errors == []
        assert sorted(results) == list(range(1, 9))
