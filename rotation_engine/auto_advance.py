"""
Auto-advance: on every schedule read, make sure an active intern has a current
or upcoming placement, creating at most one new placement per call.

States per intern:
    NO_HISTORY      no placement at all -> first placement from the round-robin offset
    IN_CYCLE        some units not yet covered -> next unit after the last placement
    CYCLE_COMPLETE  every unit covered -> nothing created unless extension days remain
                    and extension cycles are enabled
    SKIPPED         empty catalog (configuration problem)

Callers hold the intern's lock and an open transaction; see service.RotationService.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from .activity import log_activity_safe
from .config import Settings
from .dates import add_days, fmt, parse_day, span_days, span_end
from .errors import DataIntegrityError, IntegrityWarning
from .ledger import RotationLedger
from .logging_setup import get_logger
from .models import ActivityType, Intern, InternStatus, Rotation
from .reconcile import apply_status, has_current_or_upcoming, reconcile
from .selector import (
    SelectionOutcome, completed_cycles, is_automatic, partition_cycles, select_next_unit,
)

logger = get_logger(__name__)


class AdvanceState(str, Enum):
    NO_HISTORY = "no_history"
    IN_CYCLE = "in_cycle"
    CYCLE_COMPLETE = "cycle_complete"
    SKIPPED = "skipped"


@dataclass
class AdvanceResult:
    intern_id: int
    state: AdvanceState
    status: InternStatus
    created: Optional[Rotation] = None


def first_start(intern_start: date, today: date) -> date:
    """Never create a placement that starts in the past."""
    return intern_start if intern_start >= today else add_days(today, 1)


def next_start_after(last: Rotation, today: date) -> date:
    candidate = add_days(last.end_date, 1)
    return candidate if candidate >= today else add_days(today, 1)


def extension_days_scheduled(placements: Sequence, catalog: Sequence) -> int:
    """Days of automatic placements scheduled after the first full cycle."""
    cycles = partition_cycles(placements, catalog)
    if len(cycles) < 2:
        return 0
    return sum(span_days(p.start_date, p.end_date) for cycle in cycles[1:] for p in cycle)


def _insert(ledger: RotationLedger, intern: Intern, unit, start: date, end: Optional[date] = None) -> Rotation:
    placement = ledger.insert_placement(intern.id, unit, start, end=end)
    logger.info(
        "Intern %s: auto placement %s %s -> %s",
        intern.id, unit.name, fmt(placement.start_date), fmt(placement.end_date),
    )
    log_activity_safe(
        ledger.db, ActivityType.AUTO_ADVANCE, intern=intern, unit=unit,
        details=f"{fmt(placement.start_date)} to {fmt(placement.end_date)}",
    )
    return placement


def _advance_no_history(ledger: RotationLedger, intern: Intern, catalog: Sequence, today: date) -> Rotation:
    start_date = parse_day(intern.start_date)
    if start_date is None:
        raise DataIntegrityError(f"Intern {intern.id} has no usable start date ({intern.start_date!r})")

    counter = ledger.read_counter()
    selection = select_next_unit(catalog, [], None, counter_value=counter)
    placement = _insert(ledger, intern, selection.unit, first_start(start_date, today))
    # Counter moves only once the insert succeeded; both commit together
    ledger.advance_counter(counter)
    return placement


def _advance_in_cycle(
    ledger: RotationLedger,
    intern: Intern,
    placements: Sequence,
    catalog: Sequence,
    today: date,
    settings: Settings,
):
    last = ledger.latest_placement(intern.id)
    next_start = next_start_after(last, today)

    if any(is_automatic(p) and p.start_date >= next_start for p in placements):
        logger.debug("Intern %s: automatic placement from %s already exists", intern.id, fmt(next_start))
        return AdvanceState.IN_CYCLE, None

    if not completed_cycles(placements, catalog):
        selection = select_next_unit(catalog, placements, last)
        if selection.selected:
            return AdvanceState.IN_CYCLE, _insert(ledger, intern, selection.unit, next_start)
        if selection.outcome != SelectionOutcome.CYCLE_COMPLETE:
            return AdvanceState.SKIPPED, None

    # Past the first cycle only extension days not yet added by shifts are scheduled
    remaining = (
        (intern.extension_days or 0)
        - (intern.extension_days_applied or 0)
        - extension_days_scheduled(placements, catalog)
    )
    if not settings.extension_cycles_enabled or remaining <= 0:
        return AdvanceState.CYCLE_COMPLETE, None

    selection = select_next_unit(catalog, placements, last, start_new_cycle=True)
    unit = selection.unit
    end = span_end(next_start, min(unit.duration_days, remaining))
    return AdvanceState.CYCLE_COMPLETE, _insert(ledger, intern, unit, next_start, end=end)


def advance_intern(ledger: RotationLedger, intern_id: int, today: date, settings: Settings) -> AdvanceResult:
    """
    Run one auto-advance step for an intern and reconcile its status.

    Raises:
        NotFoundError: unknown intern
        DataIntegrityError: first placement needed but the start date is unusable
        ConflictError: the round-robin counter moved underneath us
    """
    intern = ledger.get_intern(intern_id, lock=True)
    catalog = ledger.list_units()
    placements = ledger.placements_for(intern.id)

    created = None
    if not catalog:
        logger.warning("[%s] Unit catalog is empty; cannot advance intern %s", IntegrityWarning.__name__, intern.id)
        state = AdvanceState.SKIPPED
    elif not placements:
        state = AdvanceState.NO_HISTORY
        created = _advance_no_history(ledger, intern, catalog, today)
    elif has_current_or_upcoming(placements, today):
        logger.debug("Intern %s: already scheduled on %s", intern.id, fmt(today))
        state = AdvanceState.IN_CYCLE
    else:
        state, created = _advance_in_cycle(ledger, intern, placements, catalog, today, settings)

    if created is not None:
        placements = list(placements) + [created]
    status = reconcile(intern, placements, catalog, today)
    apply_status(ledger, intern, status)
    return AdvanceResult(intern_id=intern.id, state=state, status=status, created=created)
