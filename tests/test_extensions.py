"""Tests for the extension processor."""
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from rotation_engine.database import session_scope
from rotation_engine.errors import NotFoundError, ValidationError
from rotation_engine.extensions import ExtensionOutcome, compute_delta, resolve_target
from rotation_engine.ledger import RotationLedger
from rotation_engine.models import ExtensionReason, ExtensionReasonType, InternStatus


def d(month, day):
    return date(2024, month, day)


def audit_rows(session_factory, intern_id):
    with session_scope(session_factory) as db:
        return [
            (r.extension_days, r.reason, r.notes)
            for r in db.query(ExtensionReason).filter(ExtensionReason.intern_id == intern_id)
            .order_by(ExtensionReason.id).all()
        ]


@pytest.fixture
def scheduled(add_units, add_intern, add_rotation):
    """Intern with A on Jan 1-5 and B on Jan 6-10; unit C exists but is unused."""
    a, b, c = add_units(("A", 5), ("B", 5), ("C", 5))
    iid = add_intern()
    add_rotation(iid, a, d(1, 1), d(1, 5))
    add_rotation(iid, b, d(1, 6), d(1, 10))
    return SimpleNamespace(intern=iid, a=a, b=b, c=c)


class TestComputeDelta:
    def test_difference_from_stored_total(self):
        assert compute_delta(8, 5) == 3
        assert compute_delta(2, 5) == -3

    def test_missing_stored_total_is_absolute(self):
        assert compute_delta(4, None) == 4

    def test_explicit_adjustment_wins(self):
        assert compute_delta(10, 0, adjustment_days=2) == 2


class TestResolveTarget:
    """Which placement absorbs the delta."""

    def _p(self, pid, unit_id, start, end):
        return SimpleNamespace(id=pid, unit_id=unit_id, start_date=start, end_date=end)

    def test_unit_picks_latest_ending(self):
        older = self._p(1, 7, d(1, 1), d(1, 3))
        newer = self._p(2, 7, d(2, 1), d(2, 3))
        assert resolve_target([older, newer], d(3, 1), unit_id=7) is newer

    def test_unit_without_placement_does_not_fall_through(self):
        running = self._p(1, 7, d(1, 1), d(1, 10))
        assert resolve_target([running], d(1, 5), unit_id=8) is None

    def test_prefers_running_placement(self):
        ended = self._p(1, 7, d(1, 1), d(1, 3))
        running = self._p(2, 8, d(1, 4), d(1, 9))
        assert resolve_target([ended, running], d(1, 5)) is running

    def test_grace_window_edges(self):
        ended = self._p(1, 7, d(1, 1), d(1, 3))
        assert resolve_target([ended], d(1, 10), grace_days=7) is ended
        assert resolve_target([ended], d(1, 11), grace_days=7) is None


class TestApplyExtension:
    """Extension requests through the service."""

    def test_explicit_unit_shifts_end(self, service, clock, scheduled, fetch):
        clock.today = d(1, 2)
        result = service.extend_intern(scheduled.intern, 3, "leave", unit_id=scheduled.a)
        assert result.outcome == ExtensionOutcome.ADJUSTED
        assert result.delta == 3
        assert result.status == InternStatus.EXTENDED
        assert fetch.rotations(scheduled.intern) == [
            (scheduled.a, d(1, 1), d(1, 8), True),
            (scheduled.b, d(1, 6), d(1, 10), False),
        ]

    def test_totals_are_cumulative(self, service, clock, scheduled, fetch):
        clock.today = d(1, 3)
        service.extend_intern(scheduled.intern, 5, "presentation")
        result = service.extend_intern(scheduled.intern, 8, "presentation")
        assert result.delta == 3
        assert result.extension_days == 8
        assert fetch.rotations(scheduled.intern)[0][2] == d(1, 13)
        assert fetch.intern(scheduled.intern).extension_days == 8

    def test_removing_extension_restores_status(self, service, clock, scheduled, fetch):
        clock.today = d(1, 3)
        service.extend_intern(scheduled.intern, 5, "leave")
        result = service.extend_intern(scheduled.intern, 0, "leave")
        assert result.delta == -5
        assert result.status == InternStatus.ACTIVE
        assert fetch.rotations(scheduled.intern)[0][2] == d(1, 5)

    def test_recently_ended_placement_within_grace(self, service, clock, scheduled, fetch):
        clock.today = d(1, 13)
        result = service.extend_intern(scheduled.intern, 2, "sign-out")
        assert result.outcome == ExtensionOutcome.ADJUSTED
        assert result.adjusted_placement.unit_id == scheduled.b
        assert fetch.rotations(scheduled.intern)[1][2] == d(1, 12)

    def test_outside_grace_is_recorded_only(self, service, clock, scheduled, fetch):
        clock.today = d(1, 20)
        result = service.extend_intern(scheduled.intern, 2, "other")
        assert result.partial
        assert result.adjusted_placement is None
        assert result.status == InternStatus.EXTENDED
        assert fetch.intern(scheduled.intern).extension_days == 2
        assert [r[2] for r in fetch.rotations(scheduled.intern)] == [d(1, 5), d(1, 10)]

    def test_unit_without_placement_is_recorded_only(self, service, clock, scheduled, fetch):
        clock.today = d(1, 3)
        result = service.extend_intern(scheduled.intern, 2, "leave", unit_id=scheduled.c)
        assert result.partial
        assert fetch.rotations(scheduled.intern)[0][2] == d(1, 5)

    def test_adjustment_days_override_delta(self, service, clock, scheduled, fetch):
        clock.today = d(1, 3)
        result = service.extend_intern(scheduled.intern, 10, "leave", adjustment_days=1)
        assert result.delta == 1
        assert result.extension_days == 10
        assert fetch.rotations(scheduled.intern)[0][2] == d(1, 6)

    def test_same_total_is_no_change(self, service, clock, scheduled, fetch):
        clock.today = d(1, 3)
        result = service.extend_intern(scheduled.intern, 0, "leave")
        assert result.outcome == ExtensionOutcome.NO_CHANGE
        assert [r[2] for r in fetch.rotations(scheduled.intern)] == [d(1, 5), d(1, 10)]

    def test_end_before_start_rejected_without_changes(self, service, session_factory, clock, scheduled, fetch):
        clock.today = d(1, 3)
        with pytest.raises(ValidationError):
            service.extend_intern(scheduled.intern, 0, "leave", adjustment_days=-10)
        assert fetch.rotations(scheduled.intern)[0] == (scheduled.a, d(1, 1), d(1, 5), False)
        assert fetch.intern(scheduled.intern).extension_days == 0
        assert audit_rows(session_factory, scheduled.intern) == []

    @pytest.mark.parametrize("days", [-1, 366, "many"])
    def test_invalid_day_counts(self, service, scheduled, days):
        with pytest.raises(ValidationError):
            service.extend_intern(scheduled.intern, days, "leave")

    def test_invalid_reason(self, service, scheduled):
        with pytest.raises(ValidationError):
            service.extend_intern(scheduled.intern, 2, "holiday")

    def test_unknown_unit(self, service, scheduled):
        with pytest.raises(ValidationError):
            service.extend_intern(scheduled.intern, 2, "leave", unit_id=999)

    def test_unknown_intern(self, service, scheduled):
        with pytest.raises(NotFoundError):
            service.extend_intern(999, 2, "leave")


class TestExtensionAudit:
    """Append-only reason records."""

    def test_each_request_appends_signed_delta(self, service, session_factory, clock, scheduled):
        clock.today = d(1, 3)
        service.extend_intern(scheduled.intern, 5, "Internal query", notes="board review")
        service.extend_intern(scheduled.intern, 2, ExtensionReasonType.LEAVE)
        assert audit_rows(session_factory, scheduled.intern) == [
            (5, "internal_query", "board review"),
            (-3, "leave", None),
        ]

    def test_audit_failure_does_not_fail_extension(self, service, session_factory, clock, scheduled, fetch, monkeypatch):
        def broken(self, *args, **kwargs):
            raise SQLAlchemyError("audit table unavailable")

        monkeypatch.setattr(RotationLedger, "append_extension_record", broken)
        clock.today = d(1, 3)
        result = service.extend_intern(scheduled.intern, 4, "leave")
        assert result.outcome == ExtensionOutcome.ADJUSTED
        assert fetch.rotations(scheduled.intern)[0][2] == d(1, 9)
        assert audit_rows(session_factory, scheduled.intern) == []


class TestLedgerQueries:
    """Placement lookups used by the engine."""

    def test_overlap_filter_and_latest(self, session_factory, scheduled):
        with session_scope(session_factory) as db:
            ledger = RotationLedger(db)
            window = ledger.placements_for(scheduled.intern, overlapping=(d(1, 5), d(1, 5)))
            assert [p.unit_id for p in window] == [scheduled.a]
            assert ledger.latest_placement(scheduled.intern).unit_id == scheduled.b
            assert ledger.latest_placement(scheduled.intern, unit_id=scheduled.a).end_date == d(1, 5)
            assert ledger.latest_placement(scheduled.intern, unit_id=scheduled.c) is None
