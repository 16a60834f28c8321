"""Members router: add, remove and leave group memberships."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils import groups as group_service


router = APIRouter(prefix="/groups", tags=["members"])


@router.post("/{group_id}/members", response_model=schemas.User)
def add_member(
    group_id: int,
    member: schemas.GroupMemberAdd,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return group_service.add_member(db, current_user, group_id, member)


@router.delete("/{group_id}/members/{user_id}")
def remove_member(
    group_id: int,
    user_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group_service.remove_member(db, current_user, group_id, user_id)
    return {"message": "Member removed successfully"}


@router.post("/{group_id}/leave")
def leave_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group_service.leave_group(db, current_user, group_id)
    return {"message": "Left group successfully"}
