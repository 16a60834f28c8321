"""Read-side helpers shared by the query routers. Sign flips and bucketing only, no recomputation."""

from typing import Optional

from sqlalchemy.orm import Session

import models
import schemas
from utils.currency import DISPLAY_EPSILON, round2
from utils.display import get_user_display_name, load_users
from utils.pairs import signed_for


def get_involvement(split: Optional[models.ExpenseSplit]) -> schemas.Involvement:
    """How an expense affected one user: lent, borrowed, settled up or not involved."""
    if split is None:
        return schemas.Involvement(type="not_involved", amount=0)

    net = split.paid_amount - split.owed_amount
    if abs(net) < DISPLAY_EPSILON:
        return schemas.Involvement(type="settled_up", amount=0)
    if net > 0:
        return schemas.Involvement(type="lent", amount=round2(net))
    return schemas.Involvement(type="borrowed", amount=round2(abs(net)))


def build_expense_summaries(
    db: Session,
    viewer_id: int,
    expenses: list[models.Expense]
) -> list[schemas.ExpenseSummary]:
    """List entries for expenses, newest first, with the viewer's involvement."""
    if not expenses:
        return []

    expense_ids = [e.id for e in expenses]
    my_splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id.in_(expense_ids),
        models.ExpenseSplit.user_id == viewer_id
    ).all()
    split_by_expense = {s.expense_id: s for s in my_splits}
    payers = load_users(db, [e.paid_by_id for e in expenses])

    ordered = sorted(expenses, key=lambda e: (e.date, e.id), reverse=True)
    return [
        schemas.ExpenseSummary(
            id=e.id,
            description=e.description,
            total_amount=e.total_amount,
            currency=e.currency,
            category=e.category,
            date=e.date,
            is_settlement=e.is_settlement,
            paid_by_name=get_user_display_name(payers.get(e.paid_by_id), viewer_id),
            my_involvement=get_involvement(split_by_expense.get(e.id))
        )
        for e in ordered
    ]


def get_member_balances(
    db: Session,
    viewer_id: int,
    balances: list[models.Balance]
) -> tuple[list[schemas.MemberBalance], float]:
    """
    The viewer's balances with each other user, signed so positive means they owe
    the viewer, sorted by size. Also returns the plain sum across currencies.
    """
    mine = [
        b for b in balances
        if (b.user1_id == viewer_id or b.user2_id == viewer_id) and b.amount != 0
    ]
    others = load_users(db, [b.user2_id if b.user1_id == viewer_id else b.user1_id for b in mine])

    member_balances = []
    my_net = 0.0
    for b in mine:
        other_id = b.user2_id if b.user1_id == viewer_id else b.user1_id
        net = signed_for(viewer_id, b.user1_id, b.amount)
        my_net += net
        other = others.get(other_id)
        member_balances.append(schemas.MemberBalance(
            user_id=other_id,
            name=other.name if other else "Unknown",
            amount=net,
            currency=b.currency
        ))

    member_balances.sort(key=lambda m: abs(m.amount), reverse=True)
    return member_balances, round2(my_net)


def get_pair_balances(db: Session, balances: list[models.Balance]) -> list[schemas.PairBalance]:
    """Stored balance rows with both users' names, in storage orientation."""
    nonzero = [b for b in balances if b.amount != 0]
    users = load_users(db, [b.user1_id for b in nonzero] + [b.user2_id for b in nonzero])
    return [
        schemas.PairBalance(
            user1_id=b.user1_id,
            user1_name=get_user_display_name(users.get(b.user1_id)),
            user2_id=b.user2_id,
            user2_name=get_user_display_name(users.get(b.user2_id)),
            amount=b.amount,
            currency=b.currency
        )
        for b in nonzero
    ]


def bucket_by_currency(amounts: list[tuple[str, float]]) -> list[schemas.CurrencyAmount]:
    totals = {}
    for currency, amount in amounts:
        totals[currency] = totals.get(currency, 0.0) + amount
    return [
        schemas.CurrencyAmount(currency=currency, amount=round2(amount))
        for currency, amount in totals.items()
        if abs(amount) >= DISPLAY_EPSILON
    ]
