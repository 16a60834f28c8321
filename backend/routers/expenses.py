"""Expenses router: add, read and delete expenses, and record settlements."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.currency import round2
from utils.display import get_user_display_name, load_group_names, load_users
from utils.errors import PermissionDeniedError
from utils.ledger import add_expense, delete_expense, settle_up
from utils.validation import get_expense_or_404, get_group_or_404, get_membership, verify_group_membership
from utils.views import build_expense_summaries


router = APIRouter(tags=["expenses"])


@router.post("/expenses", response_model=schemas.Expense)
def create_expense(
    expense: schemas.ExpenseCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return add_expense(db, current_user, expense)


@router.delete("/expenses/{expense_id}")
def remove_expense(
    expense_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    delete_expense(db, current_user, expense_id)
    return {"message": "Expense deleted successfully"}


@router.post("/settlements", response_model=schemas.Expense)
def create_settlement(
    settlement: schemas.SettlementCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return settle_up(db, current_user, settlement)


@router.get("/expenses/{expense_id}", response_model=schemas.ExpenseDetail)
def get_expense(
    expense_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    expense = get_expense_or_404(db, expense_id)
    splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id == expense_id
    ).order_by(models.ExpenseSplit.id).all()

    # Participants, and members of the expense's group, may view it
    has_access = current_user.id in {s.user_id for s in splits}
    if not has_access and expense.group_id is not None:
        membership = get_membership(db, expense.group_id, current_user.id)
        has_access = membership is not None
    if not has_access:
        raise PermissionDeniedError("You don't have access to this expense")

    users = load_users(db, [s.user_id for s in splits] + [expense.paid_by_id])
    group_name = None
    if expense.group_id is not None:
        group_name = load_group_names(db, [expense.group_id]).get(expense.group_id, "Deleted group")

    return schemas.ExpenseDetail(
        id=expense.id,
        description=expense.description,
        total_amount=expense.total_amount,
        currency=expense.currency,
        category=expense.category,
        date=expense.date,
        split_method=expense.split_method,
        notes=expense.notes,
        is_settlement=expense.is_settlement,
        is_deleted=bool(expense.is_deleted),
        payer_name=get_user_display_name(users.get(expense.paid_by_id), current_user.id),
        group_id=expense.group_id,
        group_name=group_name,
        splits=[
            schemas.ExpenseSplitDetail(
                user_id=s.user_id,
                user_name=get_user_display_name(users.get(s.user_id), current_user.id),
                paid_amount=s.paid_amount,
                owed_amount=s.owed_amount,
                net_amount=round2(s.paid_amount - s.owed_amount)
            )
            for s in splits
        ]
    )


@router.get("/groups/{group_id}/expenses", response_model=list[schemas.ExpenseSummary])
def get_group_expenses(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    expenses = db.query(models.Expense).filter(
        models.Expense.group_id == group_id,
        models.Expense.is_deleted == False
    ).all()
    return build_expense_summaries(db, current_user.id, expenses)
