"""Ledger write side: add, delete and settle expenses atomically with their balances."""

import logging
import os
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
import schemas
from utils.activity import record_activity
from utils.balances import update_balances_for_expense
from utils.currency import round2
from utils.errors import PermissionDeniedError, ValidationError
from utils.splits import calculate_splits
from utils.validation import (
    get_expense_or_404,
    get_group_or_404,
    get_user_or_404,
    validate_expense_participants,
    validate_split_totals,
    validate_unique_users,
    verify_group_membership,
)

logger = logging.getLogger(__name__)

# Operational bound on the expense set scanned per group context; 0 disables it
MAX_EXPENSES_PER_GROUP = int(os.getenv("MAX_EXPENSES_PER_GROUP", "5000"))


def normalize_date(date_str: Optional[str]) -> str:
    """Normalize date string to YYYY-MM-DD format for consistent sorting."""
    if not date_str:
        return date.today().isoformat()
    # If it's already YYYY-MM-DD format, return as-is
    if len(date_str) == 10 and date_str[4] == '-' and date_str[7] == '-':
        return date_str
    # Handle ISO format with time component (e.g., 2025-12-27T00:00:00.000Z)
    if 'T' in date_str:
        return date_str.split('T')[0]
    return date_str


def split_counters(splits: list[schemas.SplitInput]) -> dict:
    """Denormalized counts stored on the expense so lists don't rescan splits."""
    payer_count = len([s for s in splits if s.paid_amount > 0])
    split_count = len([s for s in splits if s.owed_amount > 0])
    return {
        "payer_count": payer_count,
        "split_count": split_count,
        "is_multi_payer": payer_count > 1,
    }


def check_group_capacity(db: Session, group_id: int) -> None:
    if not MAX_EXPENSES_PER_GROUP:
        return
    count = db.query(models.Expense).filter(
        models.Expense.group_id == group_id,
        models.Expense.is_deleted == False
    ).count()
    if count >= MAX_EXPENSES_PER_GROUP:
        raise ValidationError(
            f"Group has reached the limit of {MAX_EXPENSES_PER_GROUP} expenses"
        )


def _persist_expense(
    db: Session,
    db_expense: models.Expense,
    splits: list[schemas.SplitInput]
) -> models.Expense:
    """Insert an expense, its splits and the recomputed balances in one transaction."""
    try:
        db.add(db_expense)
        db.flush()

        for split in splits:
            db.add(models.ExpenseSplit(
                expense_id=db_expense.id,
                user_id=split.user_id,
                paid_amount=split.paid_amount,
                owed_amount=split.owed_amount
            ))
        db.flush()

        update_balances_for_expense(db, db_expense.group_id, splits)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(db_expense)
    return db_expense


def add_expense(db: Session, actor: models.User, expense: schemas.ExpenseCreate) -> models.Expense:
    """
    Record an expense with its splits and recompute balances for every pair of participants.

    Explicit splits are used as given; otherwise the split intent is resolved by the
    split calculator.
    """
    if expense.group_id is not None:
        get_group_or_404(db, expense.group_id)
        verify_group_membership(db, expense.group_id, actor.id)
        check_group_capacity(db, expense.group_id)

    if expense.total_amount <= 0:
        raise ValidationError("Expense amount must be positive")

    if expense.splits is not None:
        splits = [
            schemas.SplitInput(
                user_id=s.user_id,
                paid_amount=round2(s.paid_amount),
                owed_amount=round2(s.owed_amount)
            )
            for s in expense.splits
        ]
    else:
        validate_unique_users(expense.participants or [], "participants")
        validate_unique_users([d.user_id for d in expense.split_details or []], "split_details")
        validate_unique_users([p.user_id for p in expense.payers or []], "payers")
        splits = calculate_splits(expense)

    if not splits:
        raise ValidationError("No participants to split this expense between")

    validate_expense_participants(db, splits)
    validate_split_totals(expense.total_amount, splits)

    paid_by_id = expense.paid_by
    if paid_by_id is None:
        paid_by_id = max(splits, key=lambda s: s.paid_amount).user_id
    elif not any(s.user_id == paid_by_id and s.paid_amount > 0 for s in splits):
        raise ValidationError("paid_by must be one of the users who paid")

    db_expense = models.Expense(
        group_id=expense.group_id,
        paid_by_id=paid_by_id,
        description=expense.description,
        total_amount=round2(expense.total_amount),
        currency=expense.currency,
        category=expense.category,
        date=normalize_date(expense.date),
        created_by_id=actor.id,
        split_method=expense.split_method,
        is_settlement=False,
        notes=expense.notes,
        **split_counters(splits)
    )
    db_expense = _persist_expense(db, db_expense, splits)
    logger.info(
        "Expense %s added by user %s: %.2f %s across %d splits",
        db_expense.id, actor.id, db_expense.total_amount, db_expense.currency, len(splits)
    )

    payer = db.query(models.User).filter(models.User.id == paid_by_id).first()
    record_activity(
        db,
        type="expense_added",
        actor_id=actor.id,
        group_id=db_expense.group_id,
        expense_id=db_expense.id,
        involved_user_ids=[s.user_id for s in splits],
        details={
            "description": db_expense.description,
            "total_amount": db_expense.total_amount,
            "currency": db_expense.currency,
            "paid_by_name": payer.name if payer else "Unknown",
            "paid_by_user_id": paid_by_id,
            "payer_count": db_expense.payer_count,
            "split_count": db_expense.split_count,
        },
        split_summary=[
            {"user_id": s.user_id, "amount": round2(s.owed_amount - s.paid_amount)}
            for s in splits
        ]
    )
    return db_expense


def delete_expense(db: Session, actor: models.User, expense_id: int) -> models.Expense:
    """
    Soft-delete an expense and recompute the balances of its participants.

    Split rows are kept; the recompute only scans non-deleted expenses, which
    reverses the expense's contribution.
    """
    expense = get_expense_or_404(db, expense_id)
    if expense.is_deleted:
        raise ValidationError("Expense already deleted")

    splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id == expense_id
    ).all()

    if expense.group_id is not None:
        verify_group_membership(db, expense.group_id, actor.id)
    elif expense.created_by_id != actor.id and actor.id not in {s.user_id for s in splits}:
        raise PermissionDeniedError("Only participants can delete this expense")

    try:
        expense.is_deleted = True
        expense.deleted_by_id = actor.id
        expense.deleted_at = datetime.utcnow()
        db.flush()

        update_balances_for_expense(db, expense.group_id, splits)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Expense %s deleted by user %s", expense_id, actor.id)

    record_activity(
        db,
        type="expense_deleted",
        actor_id=actor.id,
        group_id=expense.group_id,
        expense_id=expense_id,
        involved_user_ids=[s.user_id for s in splits],
        details={
            "description": expense.description,
            "total_amount": expense.total_amount,
            "currency": expense.currency,
        }
    )
    return expense


def settle_up(db: Session, actor: models.User, settlement: schemas.SettlementCreate) -> models.Expense:
    """Record a real-world payment from payer to payee as a two-split settlement expense."""
    if settlement.payer_id == settlement.payee_id:
        raise ValidationError("Payer and payee must be different users")
    if settlement.amount <= 0:
        raise ValidationError("Settlement amount must be positive")

    payer = get_user_or_404(db, settlement.payer_id)
    payee = get_user_or_404(db, settlement.payee_id)

    if settlement.group_id is not None:
        get_group_or_404(db, settlement.group_id)
        verify_group_membership(db, settlement.group_id, actor.id)

    amount = round2(settlement.amount)
    splits = [
        schemas.SplitInput(user_id=payer.id, paid_amount=amount, owed_amount=0),
        schemas.SplitInput(user_id=payee.id, paid_amount=0, owed_amount=amount),
    ]

    db_expense = models.Expense(
        group_id=settlement.group_id,
        paid_by_id=payer.id,
        description="Settlement",
        total_amount=amount,
        currency=settlement.currency,
        date=normalize_date(None),
        created_by_id=actor.id,
        split_method="exact",
        is_settlement=True,
        **split_counters(splits)
    )
    db_expense = _persist_expense(db, db_expense, splits)
    logger.info(
        "Settlement %s: user %s paid user %s %.2f %s",
        db_expense.id, payer.id, payee.id, amount, settlement.currency
    )

    record_activity(
        db,
        type="settlement",
        actor_id=actor.id,
        group_id=settlement.group_id,
        expense_id=db_expense.id,
        involved_user_ids=[payer.id, payee.id],
        details={
            "total_amount": amount,
            "currency": settlement.currency,
            "paid_by_name": payer.name,
            "paid_by_user_id": payer.id,
            "settlement_to_name": payee.name,
            "settlement_to_user_id": payee.id,
        },
        split_summary=[
            {"user_id": payer.id, "amount": -amount},
            {"user_id": payee.id, "amount": amount},
        ]
    )
    return db_expense
