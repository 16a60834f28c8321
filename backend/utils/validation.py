"""Validation utilities for users, group membership and expense splits."""

from typing import Optional

from sqlalchemy.orm import Session

import models
import schemas
from utils.currency import SPLIT_TOLERANCE, SETTLED_EPSILON
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """Get a user by their email address."""
    return db.query(models.User).filter(models.User.email == email).first()


def get_group_or_404(db: Session, group_id: int) -> models.Group:
    """Get a group by ID or raise NotFoundError."""
    group = db.query(models.Group).filter(models.Group.id == group_id).first()
    if not group:
        raise NotFoundError("Group not found")
    return group


def get_expense_or_404(db: Session, expense_id: int) -> models.Expense:
    expense = db.query(models.Expense).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def get_membership(db: Session, group_id: int, user_id: int) -> Optional[models.GroupMember]:
    return db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == user_id
    ).first()


def verify_group_membership(db: Session, group_id: int, user_id: int) -> models.GroupMember:
    """Verify that a user is an active (not 'left') member of a group."""
    member = get_membership(db, group_id, user_id)
    if not member or member.status == "left":
        raise PermissionDeniedError("You are not a member of this group")
    return member


def verify_group_admin(db: Session, group_id: int, user_id: int) -> models.GroupMember:
    member = verify_group_membership(db, group_id, user_id)
    if member.role != "admin":
        raise PermissionDeniedError("Only admins can perform this action")
    return member


def validate_split_totals(total_amount: float, splits: list[schemas.SplitInput]) -> None:
    """Paid and owed sums must both match the total within a couple of cents."""
    total_paid = sum(s.paid_amount for s in splits)
    total_owed = sum(s.owed_amount for s in splits)

    if abs(total_paid - total_amount) > SPLIT_TOLERANCE:
        raise ValidationError(
            f"Split paid amounts ({total_paid:.2f}) don't match total ({total_amount:.2f})"
        )
    if abs(total_owed - total_amount) > SPLIT_TOLERANCE:
        raise ValidationError(
            f"Split owed amounts ({total_owed:.2f}) don't match total ({total_amount:.2f})"
        )


def validate_expense_participants(db: Session, splits: list[schemas.SplitInput]) -> None:
    """Every split user must exist and appear once, with no negative amounts."""
    if not splits:
        raise ValidationError("An expense needs at least one participant")

    user_ids = [s.user_id for s in splits]
    if len(set(user_ids)) != len(user_ids):
        raise ValidationError("Each user may appear only once in the splits")

    for split in splits:
        if split.paid_amount < 0 or split.owed_amount < 0:
            raise ValidationError("Split amounts cannot be negative")

    found = {
        uid for (uid,) in db.query(models.User.id).filter(models.User.id.in_(user_ids)).all()
    }
    for user_id in user_ids:
        if user_id not in found:
            raise NotFoundError(f"User with ID {user_id} not found in splits")


def assert_zero_group_balance(db: Session, group_id: int, user_id: Optional[int] = None) -> None:
    """
    Refuse when a user (or anyone, if user_id is None) has an open balance in the group.
    Amounts below one cent count as settled.
    """
    query = db.query(models.Balance).filter(models.Balance.group_id == group_id)
    if user_id is not None:
        query = query.filter(
            (models.Balance.user1_id == user_id) | (models.Balance.user2_id == user_id)
        )

    if any(abs(b.amount) >= SETTLED_EPSILON for b in query.all()):
        if user_id is None:
            raise ValidationError("Cannot delete group with outstanding balances. Settle all debts first.")
        raise ValidationError("Cannot leave group with outstanding balances. Settle up first.")


def validate_unique_users(user_ids: list[int], field: str) -> None:
    """Split intents name each user at most once per list."""
    if len(set(user_ids)) != len(user_ids):
        raise ValidationError(f"Each user may appear only once in {field}")
