"""Friends router: friend list and per-friend detail, derived from stored balances."""

from datetime import datetime, timedelta
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, aliased

import models
import schemas
from database import get_db
from dependencies import get_current_user
from routers.balances import get_context_breakdowns
from utils.currency import DISPLAY_EPSILON, round2
from utils.display import get_short_name, load_users
from utils.errors import ValidationError
from utils.pairs import canonical_pair, signed_for
from utils.validation import get_user_or_404
from utils.views import build_expense_summaries


router = APIRouter(prefix="/friends", tags=["friends"])

# Settled friends without activity for this long are listed as hidden
HIDE_AFTER = timedelta(days=7)


@router.get("", response_model=schemas.FriendList)
def read_friends(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    me = current_user.id

    # Source 1: aggregate balances, from either side of the pair
    friend_balances = db.query(models.FriendBalance).filter(
        (models.FriendBalance.user1_id == me) | (models.FriendBalance.user2_id == me)
    ).all()
    aggregate_by_friend = {}
    for fb in friend_balances:
        friend_id = fb.user2_id if fb.user1_id == me else fb.user1_id
        aggregate_by_friend[friend_id] = fb

    # Source 2: people I share an active group with
    mine = aliased(models.GroupMember)
    co_members = db.query(models.GroupMember.user_id).join(
        mine, mine.group_id == models.GroupMember.group_id
    ).filter(
        mine.user_id == me,
        mine.status != "left",
        models.GroupMember.status != "left",
        models.GroupMember.user_id != me
    ).distinct().all()

    friend_ids = set(aggregate_by_friend.keys()) | {uid for (uid,) in co_members}

    # Per-currency totals come from context balances, never from the aggregate
    all_balances = db.query(models.Balance).filter(
        (models.Balance.user1_id == me) | (models.Balance.user2_id == me)
    ).all()
    you_owe = {}
    you_are_owed = {}
    for b in all_balances:
        if abs(b.amount) < DISPLAY_EPSILON:
            continue
        net = signed_for(me, b.user1_id, b.amount)
        if net > 0:
            you_are_owed[b.currency] = you_are_owed.get(b.currency, 0.0) + net
        else:
            you_owe[b.currency] = you_owe.get(b.currency, 0.0) + abs(net)

    now = datetime.utcnow()
    users = load_users(db, friend_ids)
    friends = []
    for friend_id in friend_ids:
        friend = users.get(friend_id)
        fb = aggregate_by_friend.get(friend_id)
        friends.append(schemas.FriendSummary(
            friend_id=friend_id,
            name=friend.name if friend else "Unknown",
            avatar_url=friend.avatar_url if friend else None,
            status=friend.status if friend else "invited",
            net=signed_for(me, fb.user1_id, fb.total_amount) if fb else 0.0,
            currency=fb.currency if fb else current_user.default_currency,
            # Co-members without a balance count as recent
            last_activity_at=fb.last_activity_at if fb and fb.last_activity_at else now,
            group_breakdowns=get_context_breakdowns(db, me, friend_id)
        ))

    def is_hidden(f):
        return f.net == 0 and now - f.last_activity_at >= HIDE_AFTER

    return schemas.FriendList(
        visible=sorted([f for f in friends if not is_hidden(f)], key=lambda f: f.name.lower()),
        hidden=sorted([f for f in friends if is_hidden(f)], key=lambda f: f.name.lower()),
        you_owe=[
            schemas.CurrencyAmount(currency=c, amount=round2(a))
            for c, a in you_owe.items() if a > DISPLAY_EPSILON
        ],
        you_are_owed=[
            schemas.CurrencyAmount(currency=c, amount=round2(a))
            for c, a in you_are_owed.items() if a > DISPLAY_EPSILON
        ],
        default_currency=current_user.default_currency
    )


@router.get("/{friend_id}", response_model=schemas.FriendDetail)
def get_friend_detail(
    friend_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    if friend_id == current_user.id:
        raise ValidationError("Cannot view yourself as a friend")
    me = current_user.id
    friend = get_user_or_404(db, friend_id)

    user1_id, user2_id = canonical_pair(me, friend_id)
    friend_balance = db.query(models.FriendBalance).filter(
        models.FriendBalance.user1_id == user1_id,
        models.FriendBalance.user2_id == user2_id
    ).first()

    # Shared live expenses: both of us have a split
    mine = aliased(models.ExpenseSplit)
    theirs = aliased(models.ExpenseSplit)
    shared = db.query(models.Expense).join(
        mine, mine.expense_id == models.Expense.id
    ).join(
        theirs, theirs.expense_id == models.Expense.id
    ).filter(
        mine.user_id == me,
        theirs.user_id == friend_id,
        models.Expense.is_deleted == False
    ).distinct().all()

    return schemas.FriendDetail(
        friend=schemas.FriendProfile(
            id=friend.id,
            name=friend.name,
            short_name=get_short_name(friend.name),
            avatar_url=friend.avatar_url,
            email=friend.email,
            phone=friend.phone,
            status=friend.status
        ),
        overall_net=signed_for(me, user1_id, friend_balance.total_amount) if friend_balance else 0.0,
        currency=friend_balance.currency if friend_balance else current_user.default_currency,
        group_breakdowns=get_context_breakdowns(db, me, friend_id),
        shared_expenses=build_expense_summaries(db, me, shared)
    )
