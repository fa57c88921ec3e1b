"""Recent-updates feed. Writes are best effort and never fail the caller's transaction."""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import IntegrityWarning
from .logging_setup import get_logger
from .models import ActivityLog, ActivityType

logger = get_logger(__name__)


def log_activity(
    db: Session,
    activity_type: ActivityType,
    intern=None,
    unit=None,
    details: Optional[str] = None,
) -> ActivityLog:
    entry = ActivityLog(
        activity_type=activity_type.value,
        intern_id=intern.id if intern is not None else None,
        intern_name=intern.name if intern is not None else None,
        unit_id=unit.id if unit is not None else None,
        unit_name=unit.name if unit is not None else None,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry


def log_activity_safe(db: Session, activity_type: ActivityType, intern=None, unit=None, details: Optional[str] = None) -> Optional[ActivityLog]:
    """log_activity inside a savepoint; a failure is logged and rolled back to the savepoint only."""
    try:
        with db.begin_nested():
            return log_activity(db, activity_type, intern=intern, unit=unit, details=details)
    except SQLAlchemyError as e:
        logger.warning("[%s] Failed to log %s activity: %s", IntegrityWarning.__name__, activity_type.value, e)
        return None


def recent_activity(db: Session, limit: int = 20, intern_id: Optional[int] = None) -> List[ActivityLog]:
    q = db.query(ActivityLog)
    if intern_id is not None:
        q = q.filter(ActivityLog.intern_id == intern_id)
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
