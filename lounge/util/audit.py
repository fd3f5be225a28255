import json
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from lounge.models.core import ActivityLog
from lounge.schemas.common import Actor

logger = logging.getLogger(__name__)

def audit(db: Session, actor: Actor, action: str, entity_type: str, entity_id: str,
          details: dict | None = None, reason: str | None = None) -> ActivityLog | None:
    """Record an activity-log entry inside the caller's transaction.

    Written under a savepoint: if the insert fails the business transition
    still commits and the failure is only logged.
    """
    entry = ActivityLog(
        user_id=actor.user_id, username=actor.username, user_role=actor.role,
        action=action if not reason else f"{action}:{reason}",
        entity_type=entity_type, entity_id=entity_id,
        details=json.dumps(details, default=str) if details else None,
    )
    # business changes flush here, outside the savepoint, so their errors propagate
    db.flush()
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception("activity log write failed for %s %s %s", action, entity_type, entity_id)
        return None
    return entry
