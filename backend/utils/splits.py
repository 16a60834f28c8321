"""Split calculation utilities: turn a total and a split intent into per-user paid/owed rows."""

from typing import Optional

import schemas
from utils.currency import round2


def distribute_remainder(amounts: list[float], total: float) -> list[float]:
    """
    Round each amount to cents, then hand out the rounding remainder one cent at a
    time to the first entries until the sum matches the total.

    Example: 10.00 over three people -> [3.34, 3.33, 3.33]
    """
    result = [round2(a) for a in amounts]
    diff = round2(total - sum(result))

    i = 0
    while abs(diff) >= 0.005 and i < len(result):
        if diff > 0:
            result[i] = round2(result[i] + 0.01)
            diff = round2(diff - 0.01)
        else:
            result[i] = round2(result[i] - 0.01)
            diff = round2(diff + 0.01)
        i += 1

    return result


def build_payer_map(
    total_amount: float,
    payer_id: Optional[int],
    payers: Optional[list[schemas.PayerShare]] = None
) -> dict[int, float]:
    """Map user_id -> paid amount. Without an explicit payer list the single payer covers the total."""
    payer_map = {}
    if payers:
        for p in payers:
            payer_map[p.user_id] = round2(payer_map.get(p.user_id, 0) + p.amount)
    elif payer_id is not None:
        payer_map[payer_id] = round2(total_amount)
    return payer_map


def combine_splits(
    participant_ids: list[int],
    owed_amounts: list[float],
    payer_map: dict[int, float]
) -> list[schemas.SplitInput]:
    """
    Union payers and owing participants into one row per user.
    A payer who owes nothing gets owed_amount 0, and an ower who paid nothing gets paid_amount 0.
    """
    owed_by_user = {}
    for user_id, owed in zip(participant_ids, owed_amounts):
        owed_by_user[user_id] = owed_by_user.get(user_id, 0) + owed

    user_ids = list(owed_by_user.keys())
    for user_id in payer_map:
        if user_id not in owed_by_user:
            user_ids.append(user_id)

    return [
        schemas.SplitInput(
            user_id=user_id,
            paid_amount=round2(payer_map.get(user_id, 0)),
            owed_amount=round2(owed_by_user.get(user_id, 0))
        )
        for user_id in user_ids
    ]


def compute_equal_split(
    total_amount: float,
    participant_ids: list[int],
    payer_id: Optional[int],
    payers: Optional[list[schemas.PayerShare]] = None
) -> list[schemas.SplitInput]:
    if not participant_ids:
        return []

    per_person = total_amount / len(participant_ids)
    owed_amounts = distribute_remainder([per_person] * len(participant_ids), total_amount)
    return combine_splits(participant_ids, owed_amounts, build_payer_map(total_amount, payer_id, payers))


def compute_exact_split(
    total_amount: float,
    exact_amounts: list[schemas.SplitShare],
    payer_id: Optional[int],
    payers: Optional[list[schemas.PayerShare]] = None
) -> list[schemas.SplitInput]:
    # Sums are validated by the ledger, which tolerates a couple of cents of drift
    if not exact_amounts:
        return []

    participant_ids = [e.user_id for e in exact_amounts]
    owed_amounts = [round2(e.value) for e in exact_amounts]
    return combine_splits(participant_ids, owed_amounts, build_payer_map(total_amount, payer_id, payers))


def compute_percentage_split(
    total_amount: float,
    percentages: list[schemas.SplitShare],
    payer_id: Optional[int],
    payers: Optional[list[schemas.PayerShare]] = None
) -> list[schemas.SplitInput]:
    if not percentages:
        return []

    participant_ids = [p.user_id for p in percentages]
    raw_amounts = [total_amount * p.value / 100 for p in percentages]
    owed_amounts = distribute_remainder(raw_amounts, total_amount)
    return combine_splits(participant_ids, owed_amounts, build_payer_map(total_amount, payer_id, payers))


def compute_shares_split(
    total_amount: float,
    shares: list[schemas.SplitShare],
    payer_id: Optional[int],
    payers: Optional[list[schemas.PayerShare]] = None
) -> list[schemas.SplitInput]:
    total_shares = sum(s.value for s in shares)
    if total_shares == 0:
        return []

    participant_ids = [s.user_id for s in shares]
    raw_amounts = [total_amount * s.value / total_shares for s in shares]
    owed_amounts = distribute_remainder(raw_amounts, total_amount)
    return combine_splits(participant_ids, owed_amounts, build_payer_map(total_amount, payer_id, payers))


def calculate_splits(expense: schemas.ExpenseCreate) -> list[schemas.SplitInput]:
    """Dispatch an expense's split intent to the matching strategy."""
    method = expense.split_method
    if method == "equal":
        participant_ids = expense.participants or [d.user_id for d in expense.split_details or []]
        return compute_equal_split(expense.total_amount, participant_ids, expense.paid_by, expense.payers)
    if method == "exact":
        return compute_exact_split(expense.total_amount, expense.split_details or [], expense.paid_by, expense.payers)
    if method == "percentage":
        return compute_percentage_split(expense.total_amount, expense.split_details or [], expense.paid_by, expense.payers)
    if method == "shares":
        return compute_shares_split(expense.total_amount, expense.split_details or [], expense.paid_by, expense.payers)
    return []
