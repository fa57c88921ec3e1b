"""Storage interface for the engine. Every query the scheduling code needs goes through here."""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dates import span_end
from .errors import ConflictError, NotFoundError
from .models import (
    Intern, Unit, Rotation, ExtensionReason, SystemState, InternStatus, ROUND_ROBIN_KEY,
)


class RotationLedger:
    """Thin wrapper over a Session. Writes are flushed, never committed here."""

    def __init__(self, db: Session):
        self.db = db

    # -- interns -----------------------------------------------------------

    def get_intern(self, intern_id: int, lock: bool = False) -> Intern:
        q = self.db.query(Intern).filter(Intern.id == intern_id)
        if lock:
            q = q.with_for_update()
        intern = q.first()
        if not intern:
            raise NotFoundError(f"Intern {intern_id} not found")
        return intern

    def list_interns(self, statuses: Optional[List[str]] = None) -> List[Intern]:
        q = self.db.query(Intern)
        if statuses:
            q = q.filter(Intern.status.in_(statuses))
        return q.order_by(Intern.id).all()

    def count_interns(self) -> int:
        return self.db.query(func.count(Intern.id)).scalar() or 0

    def count_by_status(self) -> Dict[str, int]:
        out = {s.value: 0 for s in InternStatus}
        for status, n in self.db.query(Intern.status, func.count(Intern.id)).group_by(Intern.status).all():
            out[status] = n
        return out

    def set_status(self, intern: Intern, status: InternStatus) -> None:
        intern.status = status.value
        self.db.flush()

    def set_extension_days(self, intern: Intern, days: int) -> None:
        intern.extension_days = days
        self.db.flush()

    def add_applied_extension(self, intern: Intern, delta: int) -> None:
        intern.extension_days_applied = (intern.extension_days_applied or 0) + delta
        self.db.flush()

    # -- catalog -----------------------------------------------------------

    def list_units(self) -> List[Unit]:
        return self.db.query(Unit).order_by(Unit.id).all()

    def get_unit(self, unit_id: int) -> Unit:
        unit = self.db.query(Unit).filter(Unit.id == unit_id).first()
        if not unit:
            raise NotFoundError(f"Unit {unit_id} not found")
        return unit

    # -- placements --------------------------------------------------------

    def placements_for(self, intern_id: int, overlapping: Optional[Tuple[date, date]] = None) -> List[Rotation]:
        """Placements of an intern ordered by start date, then id. `overlapping` = (start, end), inclusive."""
        q = self.db.query(Rotation).filter(Rotation.intern_id == intern_id)
        if overlapping:
            start, end = overlapping
            q = q.filter(Rotation.start_date <= end, Rotation.end_date >= start)
        return q.order_by(Rotation.start_date, Rotation.id).all()

    def latest_placement(self, intern_id: int, unit_id: Optional[int] = None) -> Optional[Rotation]:
        """Most recent placement by end date (ties: highest id)."""
        q = self.db.query(Rotation).filter(Rotation.intern_id == intern_id)
        if unit_id is not None:
            q = q.filter(Rotation.unit_id == unit_id)
        return q.order_by(Rotation.end_date.desc(), Rotation.id.desc()).first()

    def insert_placement(
        self,
        intern_id: int,
        unit: Unit,
        start: date,
        end: Optional[date] = None,
        manual: bool = False,
    ) -> Rotation:
        r = Rotation(
            intern_id=intern_id,
            unit_id=unit.id,
            start_date=start,
            end_date=end or span_end(start, unit.duration_days),
            is_manual_assignment=manual,
            auto_generated=not manual,
        )
        self.db.add(r)
        self.db.flush()
        return r

    def update_placement(self, rotation: Rotation, end_date: Optional[date] = None, manual: Optional[bool] = None) -> Rotation:
        if end_date is not None:
            rotation.end_date = end_date
        if manual is not None:
            rotation.is_manual_assignment = manual
        self.db.flush()
        return rotation

    # -- round-robin counter -----------------------------------------------

    def read_counter(self) -> int:
        row = self.db.query(SystemState).populate_existing().filter(SystemState.key == ROUND_ROBIN_KEY).first()
        if row is not None:
            return row.value
        try:
            with self.db.begin_nested():
                self.db.add(SystemState(key=ROUND_ROBIN_KEY, value=0, description="Next round-robin starting offset"))
        except IntegrityError as e:
            raise ConflictError("Round-robin counter was created concurrently") from e
        return 0

    def advance_counter(self, expected: int) -> int:
        """Compare-and-swap `expected` -> `expected + 1`. Raises ConflictError on a stale read."""
        result = self.db.execute(
            update(SystemState)
            .where(SystemState.key == ROUND_ROBIN_KEY, SystemState.value == expected)
            .values(value=expected + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Round-robin counter moved past {expected}")
        return expected + 1

    # -- audit -------------------------------------------------------------

    def append_extension_record(self, intern_id: int, days: int, reason: str, notes: Optional[str]) -> ExtensionReason:
        rec = ExtensionReason(intern_id=intern_id, extension_days=days, reason=reason, notes=notes)
        self.db.add(rec)
        self.db.flush()
        return rec
