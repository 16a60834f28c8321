"""Balance recomputation engine.

Every mutation rederives the affected pairs' balances from the ledger by a full
scan of the context's non-deleted expenses. Nothing here is incremental, so any
drift can be repaired by running recalc_all_balances().
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session, aliased

import models
import schemas
from utils.currency import DEFAULT_CURRENCY, round2
from utils.pairs import canonical_pair, unique_pairs

logger = logging.getLogger(__name__)


def update_balances_for_expense(
    db: Session,
    group_id: Optional[int],
    splits: Iterable[schemas.SplitInput | models.ExpenseSplit]
) -> list[tuple[int, int]]:
    """
    Recompute balances for every pair of users appearing in an expense's splits.

    Runs the per-context recompute and then the aggregate recompute for each pair.
    Writes are flushed but not committed; the calling mutation owns the transaction.
    """
    pairs = unique_pairs(split.user_id for split in splits)

    for user1_id, user2_id in pairs:
        recalc_context_balance(db, user1_id, user2_id, group_id)
        recalc_friend_balance(db, user1_id, user2_id)

    return pairs


def get_context_expenses(
    db: Session,
    user1_id: int,
    user2_id: int,
    group_id: Optional[int]
) -> list[models.Expense]:
    """
    Non-deleted expenses that make up one context for a pair.

    A group context is every live expense of the group. The non-group context is
    every live expense without a group on which both users have a split.
    """
    if group_id is not None:
        return db.query(models.Expense).filter(
            models.Expense.group_id == group_id,
            models.Expense.is_deleted == False
        ).order_by(models.Expense.id).all()

    # No dedicated index for this; join user1's splits against user2's
    split1 = aliased(models.ExpenseSplit)
    split2 = aliased(models.ExpenseSplit)
    return db.query(models.Expense).join(
        split1, split1.expense_id == models.Expense.id
    ).join(
        split2, split2.expense_id == models.Expense.id
    ).filter(
        split1.user_id == user1_id,
        split2.user_id == user2_id,
        models.Expense.group_id == None,
        models.Expense.is_deleted == False
    ).distinct().order_by(models.Expense.id).all()


def pair_flow(splits: list, user1_id: int, user2_id: int) -> float:
    """
    Net flow between user1 and user2 on one expense; positive means user2 owes user1.

    Each participant's net is paid - owed. Lenders (net > 0) and borrowers (net < 0)
    form a bipartite flow: a borrower's debt is spread over lenders in proportion
    to how much each lender put in beyond their share.
    """
    nets = [(s.user_id, s.paid_amount - s.owed_amount) for s in splits]
    lenders = [(uid, net) for uid, net in nets if net > 0]
    borrowers = [(uid, net) for uid, net in nets if net < 0]

    total_lent = sum(net for _, net in lenders)
    if total_lent == 0:
        return 0.0

    flow = 0.0
    for lender_id, lender_net in lenders:
        for borrower_id, borrower_net in borrowers:
            if lender_id == user1_id and borrower_id == user2_id:
                flow += abs(borrower_net) * lender_net / total_lent
            elif lender_id == user2_id and borrower_id == user1_id:
                flow -= abs(borrower_net) * lender_net / total_lent
    return flow


def compute_context_balances(
    db: Session,
    user1_id: int,
    user2_id: int,
    group_id: Optional[int]
) -> dict[str, float]:
    """Per-currency net (user2 owes user1) for a canonical pair within one context."""
    expenses = get_context_expenses(db, user1_id, user2_id, group_id)
    if not expenses:
        return {}

    # Batch fetch all splits for these expenses
    expense_ids = [e.id for e in expenses]
    all_splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id.in_(expense_ids)
    ).all()

    splits_by_expense = {}
    for split in all_splits:
        splits_by_expense.setdefault(split.expense_id, []).append(split)

    net_by_currency = {}
    for expense in expenses:
        splits = splits_by_expense.get(expense.id, [])
        user_ids = {s.user_id for s in splits}
        if user1_id not in user_ids and user2_id not in user_ids:
            continue

        flow = pair_flow(splits, user1_id, user2_id)
        if flow == 0:
            continue
        net_by_currency[expense.currency] = net_by_currency.get(expense.currency, 0.0) + flow

    return {currency: round2(amount) for currency, amount in net_by_currency.items()}


def recalc_context_balance(
    db: Session,
    user1_id: int,
    user2_id: int,
    group_id: Optional[int]
) -> dict[str, float]:
    """
    Rewrite the Balance rows of a canonical pair in one context from a full scan.

    One row per currency with a nonzero net is upserted; rows for currencies that
    net to zero or no longer appear are deleted.
    """
    user1_id, user2_id = canonical_pair(user1_id, user2_id)
    nets = compute_context_balances(db, user1_id, user2_id, group_id)

    existing_rows = db.query(models.Balance).filter(
        models.Balance.user1_id == user1_id,
        models.Balance.user2_id == user2_id,
        models.Balance.group_id == group_id
    ).all()
    existing = {row.currency: row for row in existing_rows}

    now = datetime.utcnow()
    for currency, amount in nets.items():
        row = existing.pop(currency, None)
        if amount == 0:
            if row is not None:
                db.delete(row)
            continue
        if row is None:
            db.add(models.Balance(
                user1_id=user1_id,
                user2_id=user2_id,
                group_id=group_id,
                currency=currency,
                amount=amount,
                updated_at=now
            ))
        elif row.amount != amount:
            row.amount = amount
            row.updated_at = now

    # Currencies no longer backed by any live expense
    for row in existing.values():
        db.delete(row)

    db.flush()
    logger.debug("Recomputed balance %s/%s in group %s: %s", user1_id, user2_id, group_id, nets)
    return {currency: amount for currency, amount in nets.items() if amount != 0}


def recalc_friend_balance(
    db: Session,
    user1_id: int,
    user2_id: int,
    touch: bool = True
) -> models.FriendBalance:
    """
    Rewrite the FriendBalance row of a canonical pair as the sum of all its Balance rows.

    Amounts in different currencies are added as plain numbers. The primary currency
    is that of the first nonzero balance, else the first balance, else the default.
    With touch=False an existing row keeps its last_activity_at (maintenance runs).
    """
    user1_id, user2_id = canonical_pair(user1_id, user2_id)

    context_balances = db.query(models.Balance).filter(
        models.Balance.user1_id == user1_id,
        models.Balance.user2_id == user2_id
    ).order_by(models.Balance.id).all()

    total_amount = round2(sum(b.amount for b in context_balances))

    currency = DEFAULT_CURRENCY
    nonzero = [b for b in context_balances if b.amount != 0]
    if nonzero:
        currency = nonzero[0].currency
    elif context_balances:
        currency = context_balances[0].currency

    friend_balance = db.query(models.FriendBalance).filter(
        models.FriendBalance.user1_id == user1_id,
        models.FriendBalance.user2_id == user2_id
    ).first()

    now = datetime.utcnow()
    if friend_balance:
        friend_balance.total_amount = total_amount
        friend_balance.currency = currency
        if touch:
            friend_balance.last_activity_at = now
    else:
        friend_balance = models.FriendBalance(
            user1_id=user1_id,
            user2_id=user2_id,
            total_amount=total_amount,
            currency=currency,
            last_activity_at=now
        )
        db.add(friend_balance)

    db.flush()
    return friend_balance


def recalc_all_balances(db: Session, dry_run: bool = False) -> dict[str, int]:
    """
    Rederive every Balance and FriendBalance row from the ledger.

    Covers every (pair, context) that has live expenses plus every one that still
    has a stored row, so stale rows are removed. Idempotent; commits once at the end.
    """
    contexts = set()

    live_expenses = db.query(models.Expense.id, models.Expense.group_id).filter(
        models.Expense.is_deleted == False
    ).all()
    group_by_expense = {expense_id: group_id for expense_id, group_id in live_expenses}

    users_by_expense = {}
    if group_by_expense:
        for expense_id, user_id in db.query(
            models.ExpenseSplit.expense_id, models.ExpenseSplit.user_id
        ).filter(models.ExpenseSplit.expense_id.in_(list(group_by_expense.keys()))).all():
            users_by_expense.setdefault(expense_id, []).append(user_id)

    for expense_id, user_ids in users_by_expense.items():
        for pair in unique_pairs(user_ids):
            contexts.add((pair, group_by_expense[expense_id]))

    for user1_id, user2_id, group_id in db.query(
        models.Balance.user1_id, models.Balance.user2_id, models.Balance.group_id
    ).distinct().all():
        contexts.add(((user1_id, user2_id), group_id))

    pairs = {pair for pair, _ in contexts}
    for user1_id, user2_id in db.query(
        models.FriendBalance.user1_id, models.FriendBalance.user2_id
    ).all():
        pairs.add((user1_id, user2_id))

    stats = {"contexts": len(contexts), "pairs": len(pairs)}
    if dry_run:
        return stats

    try:
        for (user1_id, user2_id), group_id in sorted(contexts, key=lambda c: (c[0], c[1] is not None, c[1] or 0)):
            recalc_context_balance(db, user1_id, user2_id, group_id)
        for user1_id, user2_id in sorted(pairs):
            recalc_friend_balance(db, user1_id, user2_id, touch=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Recalculated %d contexts across %d pairs", stats["contexts"], stats["pairs"])
    return stats
