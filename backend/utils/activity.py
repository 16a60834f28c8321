"""Best-effort activity log. Writes never roll back the mutation they describe."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)


def record_activity(
    db: Session,
    type: str,
    actor_id: int,
    group_id: Optional[int] = None,
    expense_id: Optional[int] = None,
    involved_user_ids: Optional[list[int]] = None,
    details: Optional[dict] = None,
    split_summary: Optional[list[dict]] = None
) -> Optional[models.Activity]:
    """
    Append an activity record in its own commit.

    Call after the mutation has been committed. On a storage error the activity
    write is rolled back and logged, and None is returned.
    """
    activity = models.Activity(
        type=type,
        actor_id=actor_id,
        group_id=group_id,
        expense_id=expense_id,
        involved_user_ids=involved_user_ids or [],
        details={k: v for k, v in (details or {}).items() if v is not None},
        split_summary=split_summary
    )
    try:
        db.add(activity)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record %s activity for expense %s", type, expense_id)
        return None
    return activity
