import sqlite3
import threading

import pytest
from sqlalchemy.exc import OperationalError

from discount_wheel.config import DEFAULT_COUPONS, CouponConfig
from discount_wheel.models import create_db_engine, create_session_factory, ensure_schema
from discount_wheel.segments import Segment, SegmentValidator
from discount_wheel.store import ConfigurationStore, CouponCatalog

TEST_COUPONS = DEFAULT_COUPONS + [
    CouponConfig("BOOKS10", "10% off books"),
    CouponConfig("TECH20", "20% off electronics"),
]


def make_segment(label="5% off", coupon_code="METRO5", probability=0.5, **kwargs):
    kwargs.setdefault("reward", f"{label} reward")
    return Segment(label=label, coupon_code=coupon_code, probability=probability, **kwargs)


def race(n, target):
    """Run target(i) on n threads released at the same moment; collect outcomes."""
    barrier = threading.Barrier(n)
    outcomes = [None] * n

    def worker(i):
        barrier.wait()
        try:
            outcomes[i] = target(i)
        except Exception as e:
            outcomes[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def failing_sessions(session_factory, method):
    """Session factory whose sessions raise OperationalError from `method` ("flush" or "commit")."""

    def boom(*args, **kwargs):
        raise OperationalError("INSERT INTO wheel_claims", {}, sqlite3.OperationalError("disk I/O error"))

    def make():
        db = session_factory()
        setattr(db, method, boom)
        return db

    return make


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'wheel.db'}", busy_timeout=10)
    ensure_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def catalog(session_factory):
    catalog = CouponCatalog(session_factory)
    catalog.seed(TEST_COUPONS)
    return catalog


@pytest.fixture
def store(session_factory, catalog):
    return ConfigurationStore(session_factory, SegmentValidator(catalog.coupon_exists))
