"""Pytest configuration and fixtures."""
import os
import tempfile
from datetime import date
from pathlib import Path

# Must be set before the package is imported: the default engine is built at import time
_TMP = tempfile.mkdtemp(prefix="rotation-engine-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP) / 'default.db'}"
os.environ["LOG_FILE"] = ""

import pytest

from rotation_engine.config import Settings
from rotation_engine.database import init_db, make_engine, make_session_factory, session_scope
from rotation_engine.models import Intern, InternStatus, Rotation, Unit
from rotation_engine.service import RotationService


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", log_file=None, lock_timeout_seconds=5.0)


@pytest.fixture
def clock():
    return FixedClock(date(2024, 1, 1))


@pytest.fixture
def service(session_factory, settings, clock):
    return RotationService(session_factory=session_factory, settings=settings, clock=clock)


@pytest.fixture
def add_units(session_factory):
    """Insert units (name, duration_days) in order. Returns their ids."""

    def _add(*specs):
        with session_scope(session_factory) as db:
            units = [Unit(name=name, duration_days=days, workload="Low", patient_count=0) for name, days in specs]
            db.add_all(units)
            db.flush()
            return [u.id for u in units]

    return _add


@pytest.fixture
def add_intern(session_factory):
    """Insert an intern row directly, bypassing create_intern validation."""

    def _add(name="Ada", start=date(2024, 1, 1), extension_days=0, status=InternStatus.ACTIVE.value):
        with session_scope(session_factory) as db:
            intern = Intern(name=name, batch="A", start_date=start, status=status, extension_days=extension_days)
            db.add(intern)
            db.flush()
            return intern.id

    return _add


@pytest.fixture
def add_rotation(session_factory):
    def _add(intern_id, unit_id, start, end, manual=False, auto_generated=None):
        with session_scope(session_factory) as db:
            r = Rotation(
                intern_id=intern_id,
                unit_id=unit_id,
                start_date=start,
                end_date=end,
                is_manual_assignment=manual,
                auto_generated=(not manual) if auto_generated is None else auto_generated,
            )
            db.add(r)
            db.flush()
            return r.id

    return _add


@pytest.fixture
def fetch(session_factory):
    """Read helpers on a fresh session."""

    class _Fetch:
        def rotations(self, intern_id):
            with session_scope(session_factory) as db:
                return [
                    (r.unit_id, r.start_date, r.end_date, r.is_manual_assignment)
                    for r in db.query(Rotation).filter(Rotation.intern_id == intern_id)
                    .order_by(Rotation.start_date, Rotation.id).all()
                ]

        def intern(self, intern_id):
            with session_scope(session_factory) as db:
                return db.query(Intern).filter(Intern.id == intern_id).one()

    return _Fetch()
