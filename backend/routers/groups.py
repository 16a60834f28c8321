"""Groups router: create, read, update and delete groups."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils import groups as group_service
from utils.currency import round2
from utils.validation import get_group_or_404, verify_group_membership
from utils.views import get_member_balances, get_pair_balances


router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=schemas.Group)
def create_group(
    group: schemas.GroupCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return group_service.create_group(db, current_user, group)


@router.get("", response_model=schemas.GroupList)
def read_groups(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    memberships = db.query(models.GroupMember).filter(
        models.GroupMember.user_id == current_user.id,
        models.GroupMember.status != "left"
    ).all()

    groups = []
    overall_owed = 0.0
    for membership in memberships:
        group = db.query(models.Group).filter(models.Group.id == membership.group_id).first()
        if not group:
            continue

        group_balances = db.query(models.Balance).filter(
            models.Balance.group_id == group.id
        ).order_by(models.Balance.id).all()
        member_balances, my_net = get_member_balances(db, current_user.id, group_balances)
        overall_owed += my_net

        member_count = db.query(models.GroupMember).filter(
            models.GroupMember.group_id == group.id,
            models.GroupMember.status != "left"
        ).count()

        groups.append(schemas.GroupSummary(
            id=group.id,
            name=group.name,
            created_by_id=group.created_by_id,
            default_currency=group.default_currency,
            type=group.type,
            simplify_debts=bool(group.simplify_debts),
            my_net=my_net,
            member_balances=member_balances,
            member_count=member_count,
            my_role=membership.role
        ))

    return schemas.GroupList(
        groups=groups,
        overall_owed=round2(overall_owed),
        default_currency=current_user.default_currency
    )


@router.get("/{group_id}", response_model=schemas.GroupDetail)
def get_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    membership = verify_group_membership(db, group_id, current_user.id)

    # Get active members with user details
    members_query = db.query(models.GroupMember, models.User).join(
        models.User, models.GroupMember.user_id == models.User.id
    ).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.status != "left"
    ).all()

    members = [
        schemas.GroupMember(
            user_id=user.id,
            name=user.name,
            email=user.email,
            role=gm.role,
            status=gm.status
        )
        for gm, user in members_query
    ]

    group_balances = db.query(models.Balance).filter(
        models.Balance.group_id == group_id
    ).order_by(models.Balance.id).all()
    my_balances, my_net = get_member_balances(db, current_user.id, group_balances)

    return schemas.GroupDetail(
        id=group.id,
        name=group.name,
        created_by_id=group.created_by_id,
        default_currency=group.default_currency,
        type=group.type,
        simplify_debts=bool(group.simplify_debts),
        members=members,
        member_count=len(members),
        my_net=my_net,
        my_balances=my_balances,
        all_balances=get_pair_balances(db, group_balances),
        my_role=membership.role
    )


@router.put("/{group_id}", response_model=schemas.Group)
def update_group(
    group_id: int,
    group_update: schemas.GroupUpdate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return group_service.update_group(db, current_user, group_id, group_update)


@router.delete("/{group_id}")
def delete_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group_service.delete_group(db, current_user, group_id)
    return {"message": "Group deleted successfully"}
