"""
Activity Log Service

Appends audit entries after a mutation has been committed. Writing the log is
best-effort: a failure here is logged and rolled back on its own, and never
undoes the mutation it describes.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from taskboard.models.activity import ActivityLog

logger = logging.getLogger(__name__)


def record_activity(
    db: Session,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id=None,
    details: Optional[str] = None,
) -> Optional[ActivityLog]:
    """
    Append one activity entry and commit it.

    Must be called after the primary mutation has been committed.

    Returns:
        The stored entry, or None if the write failed
    """
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record activity %s on %s %s", action, entity_type, entity_id)
        return None
    return entry


def recent_activity(db: Session, user_id: str, limit: int = 10) -> List[ActivityLog]:
    statement = (
        select(ActivityLog)
        .where(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
    )
    return list(db.exec(statement).all())
