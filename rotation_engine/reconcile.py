"""Status reconciliation: an intern's status is a function of the ledger."""
from datetime import date
from typing import Sequence

from .activity import log_activity_safe
from .dates import is_current_or_upcoming
from .ledger import RotationLedger
from .logging_setup import get_logger
from .models import ActivityType, Intern, InternStatus
from .selector import covers_catalog

logger = get_logger(__name__)


def has_current_or_upcoming(placements: Sequence, today: date) -> bool:
    return any(is_current_or_upcoming(p, today) for p in placements)


def reconcile(intern: Intern, placements: Sequence, catalog: Sequence, today: date) -> InternStatus:
    """
    Derive the lifecycle status.

    Scheduled (current or upcoming placement) -> Active
    Nothing scheduled and every unit covered  -> Completed
    Nothing scheduled, coverage incomplete    -> Active (gap in schedule)
    Positive extension days turn Active/Completed into Extended.
    """
    extended = (intern.extension_days or 0) > 0
    if has_current_or_upcoming(placements, today):
        return InternStatus.EXTENDED if extended else InternStatus.ACTIVE
    if covers_catalog(placements, catalog):
        return InternStatus.EXTENDED if extended else InternStatus.COMPLETED
    return InternStatus.EXTENDED if extended else InternStatus.ACTIVE


def apply_status(ledger: RotationLedger, intern: Intern, status: InternStatus) -> bool:
    """Write the status only if it changed. Returns True when a write happened."""
    if intern.status == status.value:
        return False
    previous = intern.status
    ledger.set_status(intern, status)
    logger.info("Intern %s status %s -> %s", intern.id, previous, status.value)
    log_activity_safe(ledger.db, ActivityType.STATUS_CHANGE, intern=intern, details=f"{previous} -> {status.value}")
    return True


def reconcile_intern(ledger: RotationLedger, intern: Intern, today: date) -> InternStatus:
    """Load the ledger for one intern, reconcile, write back if needed."""
    status = reconcile(intern, ledger.placements_for(intern.id), ledger.list_units(), today)
    apply_status(ledger, intern, status)
    return status
