"""
Engine entry points for HTTP and report layers.

Each operation runs in a single transaction under the intern's lock and is
retried as a whole on ConflictError.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .activity import log_activity_safe, recent_activity
from .auto_advance import AdvanceResult, advance_intern
from .config import Settings, get_settings
from .database import SessionLocal, session_scope
from .dates import fmt, is_completed, is_current, is_upcoming, require_day, span_end, today_in
from .errors import ConflictError, NotFoundError, RotationError, ValidationError
from .extensions import ExtensionResult, apply_extension
from .ledger import RotationLedger
from .locks import InternLocks
from .logging_setup import get_logger
from .models import ActivityLog, ActivityType, Batch, Gender, Intern, InternStatus, Rotation
from .reconcile import reconcile_intern

logger = get_logger(__name__)


@dataclass
class ScheduleView:
    intern: Intern
    status: InternStatus
    rotations: List[Rotation]
    completed: List[Rotation] = field(default_factory=list)
    current: Optional[Rotation] = None
    upcoming: List[Rotation] = field(default_factory=list)
    advance: Optional[AdvanceResult] = None


def build_schedule_view(intern: Intern, rotations: List[Rotation], today: date, advance: Optional[AdvanceResult] = None) -> ScheduleView:
    ordered = sorted(rotations, key=lambda r: (r.start_date, r.id))
    running = sorted((r for r in ordered if is_current(r, today)), key=lambda r: r.start_date, reverse=True)
    return ScheduleView(
        intern=intern,
        status=InternStatus(intern.status),
        rotations=ordered,
        completed=[r for r in ordered if is_completed(r, today)],
        current=running[0] if running else None,
        upcoming=[r for r in ordered if is_upcoming(r, today)],
        advance=advance,
    )


class RotationService:
    def __init__(
        self,
        session_factory=None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], date]] = None,
        locks: Optional[InternLocks] = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory or SessionLocal
        self.clock = clock or (lambda: today_in(self.settings.timezone))
        self.locks = locks or InternLocks(timeout=self.settings.lock_timeout_seconds)

    def _retrying(self, op: Callable, *args, **kwargs):
        attempts = max(1, self.settings.conflict_retries + 1)
        for attempt in range(1, attempts + 1):
            try:
                return op(*args, **kwargs)
            except ConflictError:
                if attempt == attempts:
                    raise
                logger.info("Conflict in %s (attempt %d/%d), retrying", op.__name__, attempt, attempts)

    # -- schedule ------------------------------------------------------------

    def get_schedule(self, intern_id: int) -> ScheduleView:
        """Auto-advance (if enabled) and return the intern's ordered placements."""
        return self._retrying(self._get_schedule, intern_id)

    def _get_schedule(self, intern_id: int) -> ScheduleView:
        today = self.clock()
        with self.locks.hold(intern_id), session_scope(self.session_factory) as db:
            ledger = RotationLedger(db)
            result = None
            if self.settings.auto_rotation:
                result = advance_intern(ledger, intern_id, today, self.settings)
                intern = ledger.get_intern(intern_id)
            else:
                intern = ledger.get_intern(intern_id, lock=True)
                reconcile_intern(ledger, intern, today)
            rotations = ledger.placements_for(intern_id)
            for r in rotations:
                r.unit  # load before the session closes
            return build_schedule_view(intern, rotations, today, advance=result)

    def list_placements(self, intern_id: int, start: Optional[date] = None, end: Optional[date] = None) -> List[Rotation]:
        """Stored placements, optionally only those overlapping [start, end]. No auto-advance."""
        if start is not None and end is not None and end < start:
            raise ValidationError("end must not be before start")
        window = None
        if start is not None or end is not None:
            window = (start or date.min, end or date.max)
        with session_scope(self.session_factory) as db:
            ledger = RotationLedger(db)
            ledger.get_intern(intern_id)
            rotations = ledger.placements_for(intern_id, overlapping=window)
            for r in rotations:
                r.unit  # load before the session closes
            return rotations

    def advance_all(self) -> Dict[int, object]:
        """
        Auto-advance every Active/Extended intern, one transaction each.
        Returns {intern_id: AdvanceResult or the error that stopped it}. A failure
        for one intern (engine or database) never stops the others.
        """
        with session_scope(self.session_factory) as db:
            ids = [i.id for i in RotationLedger(db).list_interns(
                [InternStatus.ACTIVE.value, InternStatus.EXTENDED.value])]
        results: Dict[int, object] = {}
        for intern_id in ids:
            try:
                results[intern_id] = self._retrying(self._advance_one, intern_id)
            except (RotationError, SQLAlchemyError) as e:
                logger.error("Auto-advance failed for intern %s: %s", intern_id, e, exc_info=True)
                results[intern_id] = e
        return results

    def _advance_one(self, intern_id: int) -> AdvanceResult:
        today = self.clock()
        with self.locks.hold(intern_id), session_scope(self.session_factory) as db:
            return advance_intern(RotationLedger(db), intern_id, today, self.settings)

    # -- extensions ------------------------------------------------------------

    def extend_intern(
        self,
        intern_id: int,
        days: int,
        reason,
        notes: Optional[str] = None,
        unit_id: Optional[int] = None,
        adjustment_days: Optional[int] = None,
    ) -> ExtensionResult:
        return self._retrying(self._extend, intern_id, days, reason, notes, unit_id, adjustment_days)

    def _extend(self, intern_id, days, reason, notes, unit_id, adjustment_days) -> ExtensionResult:
        today = self.clock()
        with self.locks.hold(intern_id), session_scope(self.session_factory) as db:
            result = apply_extension(
                RotationLedger(db), intern_id, days, reason, notes, today, self.settings,
                unit_id=unit_id, adjustment_days=adjustment_days,
            )
            if result.adjusted_placement is not None:
                result.adjusted_placement.unit  # load before the session closes
            return result

    # -- interns ---------------------------------------------------------------

    def create_intern(
        self,
        name: str,
        start_date,
        batch: Optional[str] = None,
        gender: Optional[str] = None,
        phone_number: Optional[str] = None,
        initial_unit_id: Optional[int] = None,
        auto_generate: Optional[bool] = None,
    ) -> Intern:
        """
        Create an intern. With `initial_unit_id` the first placement is a manual one;
        otherwise the first automatic placement is generated when `auto_generate`
        (default: AUTO_GENERATE_ON_CREATE) is on.
        """
        if not name or not str(name).strip():
            raise ValidationError("Name is required")
        start = require_day(start_date, "start date")
        if gender is not None and gender not in {g.value for g in Gender}:
            raise ValidationError(f"Invalid gender: {gender!r}")
        if auto_generate is None:
            auto_generate = self.settings.auto_generate_on_create
        return self._retrying(
            self._create_intern, str(name).strip(), start, batch, gender, phone_number, initial_unit_id, auto_generate,
        )

    def _create_intern(self, name, start, batch, gender, phone_number, initial_unit_id, auto_generate) -> Intern:
        today = self.clock()
        with session_scope(self.session_factory) as db:
            ledger = RotationLedger(db)
            unit = None
            if initial_unit_id is not None:
                try:
                    unit = ledger.get_unit(initial_unit_id)
                except NotFoundError as e:
                    raise ValidationError("Invalid unit selected") from e
            if batch not in {b.value for b in Batch}:
                # Alternate A/B by head count
                batch = Batch.A.value if ledger.count_interns() % 2 == 0 else Batch.B.value

            intern = Intern(
                name=name,
                gender=gender,
                batch=batch,
                start_date=start,
                phone_number=phone_number,
                status=InternStatus.ACTIVE.value,
                extension_days=0,
            )
            db.add(intern)
            db.flush()
            logger.info("Created intern %s (%s, batch %s, start %s)", intern.id, name, batch, fmt(start))
            log_activity_safe(db, ActivityType.NEW_INTERN, intern=intern, details=f"batch {batch}, start {fmt(start)}")

            if unit is not None:
                ledger.insert_placement(intern.id, unit, start, end=span_end(start, unit.duration_days), manual=True)
                log_activity_safe(db, ActivityType.REASSIGNMENT, intern=intern, unit=unit, details="initial unit")
                reconcile_intern(ledger, intern, today)
            elif auto_generate:
                advance_intern(ledger, intern.id, today, self.settings)
            return intern

    def reconcile_status(self, intern_id: int) -> InternStatus:
        return self._retrying(self._reconcile, intern_id)

    def _reconcile(self, intern_id: int) -> InternStatus:
        today = self.clock()
        with self.locks.hold(intern_id), session_scope(self.session_factory) as db:
            ledger = RotationLedger(db)
            return reconcile_intern(ledger, ledger.get_intern(intern_id, lock=True), today)

    # -- reporting -------------------------------------------------------------

    def status_counts(self) -> Dict[str, int]:
        with session_scope(self.session_factory) as db:
            return RotationLedger(db).count_by_status()

    def recent_activity(self, limit: int = 20, intern_id: Optional[int] = None) -> List[ActivityLog]:
        with session_scope(self.session_factory) as db:
            return recent_activity(db, limit=limit, intern_id=intern_id)


_service: Optional[RotationService] = None


def get_service() -> RotationService:
    global _service
    if _service is None:
        _service = RotationService()
    return _service
