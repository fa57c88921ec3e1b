"""
Extension / adjustment of an intern's placement.

The caller sends the new cumulative extension total. The difference from the
stored total is applied to one placement's end date, chosen by the first
matching strategy:

    1. explicit unit id  -> latest-ending placement of that unit
    2. no unit id        -> placement running today
    3.                   -> latest placement ended within the grace window
    4. nothing found     -> totals and status still updated (recorded only)
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .activity import log_activity_safe
from .config import Settings
from .dates import add_days, fmt, is_current
from .errors import IntegrityWarning, NotFoundError, ValidationError
from .ledger import RotationLedger
from .logging_setup import get_logger
from .models import ActivityType, ExtensionReasonType, InternStatus, Rotation
from .reconcile import reconcile_intern
from .selector import partition_cycles

logger = get_logger(__name__)


class ExtensionOutcome(str, Enum):
    ADJUSTED = "adjusted"            # placement end date shifted
    RECORDED_ONLY = "recorded_only"  # no target placement; schedule unchanged
    NO_CHANGE = "no_change"          # delta of zero


@dataclass
class ExtensionResult:
    intern_id: int
    status: InternStatus
    extension_days: int
    delta: int
    outcome: ExtensionOutcome
    adjusted_placement: Optional[Rotation] = None

    @property
    def partial(self) -> bool:
        return self.outcome == ExtensionOutcome.RECORDED_ONLY


# -- target resolution -----------------------------------------------------

def by_unit(placements: Sequence[Rotation], today: date, unit_id: Optional[int], grace_days: int) -> Optional[Rotation]:
    matches = [p for p in placements if p.unit_id == unit_id]
    if not matches:
        return None
    return max(matches, key=lambda p: (p.end_date, p.id or 0))


def containing_today(placements: Sequence[Rotation], today: date, unit_id: Optional[int], grace_days: int) -> Optional[Rotation]:
    current = [p for p in placements if is_current(p, today)]
    if not current:
        return None
    return max(current, key=lambda p: (p.start_date, p.id or 0))


def recently_ended(placements: Sequence[Rotation], today: date, unit_id: Optional[int], grace_days: int) -> Optional[Rotation]:
    window_start = add_days(today, -grace_days)
    recent = [p for p in placements if window_start <= p.end_date < today]
    if not recent:
        return None
    return max(recent, key=lambda p: (p.end_date, p.id or 0))


Strategy = Callable[[Sequence[Rotation], date, Optional[int], int], Optional[Rotation]]

UNIT_STRATEGIES: List[Strategy] = [by_unit]
DEFAULT_STRATEGIES: List[Strategy] = [containing_today, recently_ended]


def resolve_target(placements: Sequence[Rotation], today: date, unit_id: Optional[int] = None, grace_days: int = 7) -> Optional[Rotation]:
    strategies = UNIT_STRATEGIES if unit_id is not None else DEFAULT_STRATEGIES
    for strategy in strategies:
        found = strategy(placements, today, unit_id, grace_days)
        if found is not None:
            return found
    return None


# -- processor -------------------------------------------------------------

def compute_delta(new_total: int, old_total: Optional[int], adjustment_days: Optional[int] = None) -> int:
    if adjustment_days is not None:
        return adjustment_days
    if old_total is None:
        return new_total
    return new_total - old_total


def _in_extension_cycle(target: Rotation, placements: Sequence[Rotation], catalog: Sequence) -> bool:
    """Automatic placement scheduled after the first full cycle; its span already counts as extension."""
    return any(p is target for cycle in partition_cycles(placements, catalog)[1:] for p in cycle)


def _append_audit(ledger: RotationLedger, intern_id: int, days: int, reason: ExtensionReasonType, notes: Optional[str]) -> None:
    try:
        with ledger.db.begin_nested():
            ledger.append_extension_record(intern_id, days, reason.value, notes)
    except SQLAlchemyError as e:
        logger.warning("[%s] Failed to record extension reason for intern %s: %s", IntegrityWarning.__name__, intern_id, e)


def apply_extension(
    ledger: RotationLedger,
    intern_id: int,
    total_extension_days: int,
    reason,
    notes: Optional[str],
    today: date,
    settings: Settings,
    unit_id: Optional[int] = None,
    adjustment_days: Optional[int] = None,
) -> ExtensionResult:
    """
    Record a new extension total for an intern and shift the target placement.

    Raises:
        ValidationError: bad day count, reason or unit, or an end date before the start
        NotFoundError: unknown intern
    """
    try:
        total = int(total_extension_days)
    except (TypeError, ValueError):
        raise ValidationError(f"Extension days must be an integer, got {total_extension_days!r}")
    if not 0 <= total <= settings.max_extension_days:
        raise ValidationError(f"Extension must be 0-{settings.max_extension_days} days")
    try:
        reason_type = ExtensionReasonType.parse(reason)
    except ValueError:
        raise ValidationError(f"Invalid extension reason: {reason!r}")
    unit = None
    if unit_id is not None:
        try:
            unit = ledger.get_unit(unit_id)
        except NotFoundError as e:
            raise ValidationError(str(e)) from e

    intern = ledger.get_intern(intern_id, lock=True)
    placements = ledger.placements_for(intern.id)
    delta = compute_delta(total, intern.extension_days, adjustment_days)

    target = resolve_target(placements, today, unit_id, settings.extension_grace_days) if delta else None
    new_end = None
    if target is not None:
        new_end = add_days(target.end_date, delta)
        if new_end < target.start_date:
            raise ValidationError(
                f"Adjustment of {delta} days would end placement {target.id} before it starts"
            )

    # Validation done; mutate
    ledger.set_extension_days(intern, total)
    if target is not None:
        in_extension_cycle = _in_extension_cycle(target, placements, ledger.list_units())
        ledger.update_placement(target, end_date=new_end, manual=True)
        if not in_extension_cycle:
            # extension cycles schedule only what shifts have not already added
            ledger.add_applied_extension(intern, delta)
        outcome = ExtensionOutcome.ADJUSTED
        logger.info("Intern %s: placement %s end shifted by %+d to %s", intern.id, target.id, delta, fmt(new_end))
    elif delta:
        outcome = ExtensionOutcome.RECORDED_ONLY
        logger.info("Intern %s: extension recorded, no placement to adjust", intern.id)
    else:
        outcome = ExtensionOutcome.NO_CHANGE

    _append_audit(ledger, intern.id, delta, reason_type, notes)
    log_activity_safe(
        ledger.db, ActivityType.EXTENSION, intern=intern,
        unit=target.unit if target is not None else unit,
        details=f"total {total} days ({delta:+d}), reason {reason_type.value}",
    )

    status = reconcile_intern(ledger, intern, today)
    return ExtensionResult(
        intern_id=intern.id,
        status=status,
        extension_days=total,
        delta=delta,
        outcome=outcome,
        adjusted_placement=target,
    )
