"""Activities router: the caller's activity feed."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.display import get_user_display_name, load_group_names, load_users


router = APIRouter(prefix="/activities", tags=["activities"])

PER_SOURCE_LIMIT = 50
FEED_LIMIT = 100


@router.get("", response_model=list[schemas.ActivityOut])
def get_my_activities(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    """
    Merge the latest activities of every group I am or was in with the latest
    activities I performed (which covers non-group ones), newest first.
    """
    # Include "left" memberships for history
    group_ids = [
        gid for (gid,) in db.query(models.GroupMember.group_id).filter(
            models.GroupMember.user_id == current_user.id
        ).all()
    ]

    activities = {}
    for group_id in group_ids:
        for a in db.query(models.Activity).filter(
            models.Activity.group_id == group_id
        ).order_by(models.Activity.created_at.desc(), models.Activity.id.desc()).limit(PER_SOURCE_LIMIT).all():
            activities[a.id] = a

    for a in db.query(models.Activity).filter(
        models.Activity.actor_id == current_user.id
    ).order_by(models.Activity.created_at.desc(), models.Activity.id.desc()).limit(PER_SOURCE_LIMIT).all():
        activities[a.id] = a

    feed = sorted(activities.values(), key=lambda a: (a.created_at, a.id), reverse=True)[:FEED_LIMIT]

    actors = load_users(db, [a.actor_id for a in feed])
    group_names = load_group_names(db, [a.group_id for a in feed])

    result = []
    for a in feed:
        my_amount = None
        for entry in a.split_summary or []:
            if entry.get("user_id") == current_user.id:
                my_amount = entry.get("amount")  # negative = I'm owed, positive = I owe

        result.append(schemas.ActivityOut(
            id=a.id,
            type=a.type,
            actor_id=a.actor_id,
            actor_name=get_user_display_name(actors.get(a.actor_id), current_user.id),
            group_id=a.group_id,
            group_name=group_names.get(a.group_id) if a.group_id is not None else None,
            expense_id=a.expense_id,
            details=a.details or {},
            my_amount=my_amount,
            created_at=a.created_at
        ))
    return result
