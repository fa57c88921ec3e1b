"""Tests for date helpers, settings and logging setup."""
import logging
from datetime import date, datetime, timezone

import pytest

from rotation_engine.config import Settings
from rotation_engine.dates import (
    add_days, fmt, is_completed, is_current, is_upcoming,
    parse_day, require_day, span_days, span_end, today_in,
)
from rotation_engine.errors import CUSTOM_ERRORS, ConflictError, RotationError, ValidationError
from rotation_engine.logging_setup import setup_logging
from rotation_engine.models import ExtensionReasonType, Workload, workload_for_patient_count


class _P:
    def __init__(self, start, end):
        self.start_date = start
        self.end_date = end


class TestDates:
    """Day-precision helpers."""

    @pytest.mark.parametrize("value", [
        date(2024, 2, 29),
        datetime(2024, 2, 29, 23, 59),
        "2024-02-29",
        "2024-02-29 08:00:00",
        "2024-02-29T08:00:00.000Z",
    ])
    def test_parse_day_formats(self, value):
        assert parse_day(value) == date(2024, 2, 29)

    @pytest.mark.parametrize("value", [None, "", "   ", "29/02/2024", "2023-02-29"])
    def test_parse_day_rejects(self, value):
        assert parse_day(value) is None

    def test_require_day(self):
        with pytest.raises(ValidationError):
            require_day("soon", "start date")

    def test_inclusive_spans(self):
        assert span_end(date(2024, 1, 1), 1) == date(2024, 1, 1)
        assert span_end(date(2024, 1, 30), 3) == date(2024, 2, 1)
        assert span_days(date(2024, 1, 1), date(2024, 1, 1)) == 1
        assert add_days(date(2024, 3, 1), -1) == date(2024, 2, 29)

    def test_today_in_zone(self):
        late_utc = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        assert today_in("UTC", now=late_utc) == date(2024, 1, 1)
        assert today_in("Africa/Lagos", now=late_utc) == date(2024, 1, 2)
        assert today_in("America/New_York", now=late_utc) == date(2024, 1, 1)

    def test_predicates_on_boundaries(self):
        p = _P(date(2024, 1, 5), date(2024, 1, 7))
        assert is_current(p, date(2024, 1, 5)) and is_current(p, date(2024, 1, 7))
        assert is_upcoming(p, date(2024, 1, 4))
        assert is_completed(p, date(2024, 1, 8))

    def test_fmt(self):
        assert fmt(date(2024, 1, 2)) == "2024-01-02"
        assert fmt(None) is None


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EXTENSION_GRACE_DAYS", "3")
        monkeypatch.setenv("AUTO_ROTATION", "false")
        monkeypatch.setenv("EXTENSION_CYCLES_ENABLED", "1")
        monkeypatch.setenv("ROTATION_TIMEZONE", "Africa/Lagos")
        monkeypatch.setenv("LOG_FILE", "")
        s = Settings.from_env()
        assert s.extension_grace_days == 3
        assert s.auto_rotation is False
        assert s.extension_cycles_enabled is True
        assert s.timezone == "Africa/Lagos"
        assert s.log_file is None

    def test_defaults(self, monkeypatch):
        for var in ("EXTENSION_GRACE_DAYS", "AUTO_ROTATION", "MAX_EXTENSION_DAYS", "AUTO_GENERATE_ON_CREATE"):
            monkeypatch.delenv(var, raising=False)
        s = Settings.from_env()
        assert s.extension_grace_days == 7
        assert s.max_extension_days == 365
        assert s.auto_rotation is True
        assert s.auto_generate_on_create is False


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(ConflictError, RotationError)
        assert CUSTOM_ERRORS[ValidationError] == 400
        assert CUSTOM_ERRORS[ConflictError] == 409


class TestModelsHelpers:
    @pytest.mark.parametrize("label, expected", [
        ("internal query", ExtensionReasonType.INTERNAL_QUERY),
        ("Sign-Out", ExtensionReasonType.SIGN_OUT),
        ("LEAVE", ExtensionReasonType.LEAVE),
    ])
    def test_reason_labels(self, label, expected):
        assert ExtensionReasonType.parse(label) == expected

    def test_unknown_reason(self):
        with pytest.raises(ValueError):
            ExtensionReasonType.parse("holiday")

    def test_workload_bands(self):
        assert workload_for_patient_count(0) == Workload.LOW
        assert workload_for_patient_count(6) == Workload.MEDIUM
        assert workload_for_patient_count(12) == Workload.HIGH


class TestLoggingSetup:
    """Tests for logging configuration."""

    @pytest.fixture(autouse=True)
    def _reset(self):
        yield
        for h in logging.getLogger("rotation_engine").handlers:
            h.close()
        setup_logging(log_file=None)

    def test_console_and_file(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        logger = setup_logging(level="DEBUG", log_file=str(log_file))
        assert logger.name == "rotation_engine"
        assert len(logger.handlers) == 2
        logger.info("placement created")
        assert log_file.exists()

    def test_console_only(self):
        logger = setup_logging(log_file=None)
        assert len(logger.handlers) == 1


class TestSeed:
    def test_seed_is_idempotent(self, session_factory):
        from rotation_engine.database import session_scope
        from rotation_engine.models import ROUND_ROBIN_KEY, SystemState, Unit
        from rotation_engine.seed import DEFAULT_UNITS, seed

        db = session_factory()
        try:
            assert seed(db) == len(DEFAULT_UNITS)
            assert seed(db) == 0
        finally:
            db.close()
        with session_scope(session_factory) as db:
            assert db.query(Unit).count() == len(DEFAULT_UNITS)
            assert db.query(SystemState).filter(SystemState.key == ROUND_ROBIN_KEY).one().value == 0
