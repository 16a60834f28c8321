"""Balances router: read the stored pairwise balances from either side of a pair."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.currency import DISPLAY_EPSILON
from utils.display import get_context_name, load_group_names
from utils.errors import ValidationError
from utils.pairs import canonical_pair, signed_for
from utils.validation import get_group_or_404, get_user_or_404, verify_group_membership
from utils.views import bucket_by_currency, get_member_balances, get_pair_balances


router = APIRouter(tags=["balances"])


def get_context_breakdowns(db: Session, viewer_id: int, friend_id: int) -> list[schemas.ContextBalance]:
    """The pair's per-context, per-currency balances, signed for the viewer, largest first."""
    user1_id, user2_id = canonical_pair(viewer_id, friend_id)
    pair_balances = db.query(models.Balance).filter(
        models.Balance.user1_id == user1_id,
        models.Balance.user2_id == user2_id
    ).order_by(models.Balance.id).all()

    visible = [b for b in pair_balances if abs(b.amount) >= DISPLAY_EPSILON]
    group_names = load_group_names(db, [b.group_id for b in visible])
    breakdowns = [
        schemas.ContextBalance(
            group_id=b.group_id,
            group_name=get_context_name(b.group_id, group_names),
            amount=signed_for(viewer_id, user1_id, b.amount),
            currency=b.currency
        )
        for b in visible
    ]
    return sorted(breakdowns, key=lambda b: abs(b.amount), reverse=True)


def get_friend_aggregate(db: Session, viewer_id: int, friend_id: int) -> schemas.FriendAggregate | None:
    user1_id, user2_id = canonical_pair(viewer_id, friend_id)
    friend_balance = db.query(models.FriendBalance).filter(
        models.FriendBalance.user1_id == user1_id,
        models.FriendBalance.user2_id == user2_id
    ).first()
    if not friend_balance:
        return None
    return schemas.FriendAggregate(
        total_amount=signed_for(viewer_id, user1_id, friend_balance.total_amount),
        currency=friend_balance.currency,
        last_activity_at=friend_balance.last_activity_at
    )


@router.get("/balances/{friend_id}", response_model=schemas.PairBalanceView)
def get_balance_between(
    friend_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    if friend_id == current_user.id:
        raise ValidationError("Cannot query a balance with yourself")
    get_user_or_404(db, friend_id)

    contexts = get_context_breakdowns(db, current_user.id, friend_id)
    return schemas.PairBalanceView(
        friend_id=friend_id,
        contexts=contexts,
        by_currency=bucket_by_currency([(c.currency, c.amount) for c in contexts]),
        aggregate=get_friend_aggregate(db, current_user.id, friend_id)
    )


@router.get("/groups/{group_id}/balances", response_model=schemas.GroupBalances)
def get_group_balances(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    group_balances = db.query(models.Balance).filter(
        models.Balance.group_id == group_id
    ).order_by(models.Balance.id).all()

    my_balances, _ = get_member_balances(db, current_user.id, group_balances)
    return schemas.GroupBalances(
        group_id=group_id,
        my_net_by_currency=bucket_by_currency([(m.currency, m.amount) for m in my_balances]),
        my_balances=my_balances,
        all_balances=get_pair_balances(db, group_balances)
    )
