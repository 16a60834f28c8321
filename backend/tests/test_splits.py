import schemas
from utils.currency import round2
from utils.splits import (
    calculate_splits,
    compute_equal_split,
    compute_exact_split,
    compute_percentage_split,
    compute_shares_split,
    distribute_remainder,
)


def by_user(splits):
    return {s.user_id: (s.paid_amount, s.owed_amount) for s in splits}

def test_round2_half_away_from_zero():
    assert round2(2.675) == 2.68
    assert round2(-2.675) == -2.68
    assert round2(0.125) == 0.13
    assert round2(1.004) == 1.0

def test_equal_split_remainder_goes_to_first_participant():
    splits = compute_equal_split(10.00, [1, 2, 3], payer_id=1)
    owed = [s.owed_amount for s in splits]
    assert owed == [3.34, 3.33, 3.33]
    assert round2(sum(owed)) == 10.00

def test_equal_split_negative_remainder():
    # 20.00 / 3 = 6.67 after rounding, three of them overshoot by a cent
    owed = distribute_remainder([20 / 3] * 3, 20.00)
    assert owed == [6.66, 6.67, 6.67]
    assert round2(sum(owed)) == 20.00

def test_equal_split_no_participants_is_empty():
    assert compute_equal_split(10.00, [], payer_id=1) == []

def test_payer_outside_participants_gets_zero_owed_row():
    splits = compute_equal_split(30.00, [2, 3], payer_id=1)
    rows = by_user(splits)
    assert rows[1] == (30.00, 0)
    assert rows[2] == (0, 15.00)
    assert rows[3] == (0, 15.00)

def test_multi_payer_map_replaces_single_payer():
    payers = [schemas.PayerShare(user_id=1, amount=60), schemas.PayerShare(user_id=2, amount=30)]
    splits = compute_equal_split(90.00, [1, 2, 3], payer_id=1, payers=payers)
    rows = by_user(splits)
    assert rows[1] == (60.00, 30.00)
    assert rows[2] == (30.00, 30.00)
    assert rows[3] == (0, 30.00)

def test_exact_split_keeps_caller_amounts():
    details = [schemas.SplitShare(user_id=1, value=12.5), schemas.SplitShare(user_id=2, value=7.499)]
    splits = compute_exact_split(20.00, details, payer_id=2)
    rows = by_user(splits)
    assert rows[1] == (0, 12.5)
    assert rows[2] == (20.00, 7.5)

def test_percentage_split_reconciles_to_total():
    details = [
        schemas.SplitShare(user_id=1, value=33.33),
        schemas.SplitShare(user_id=2, value=33.33),
        schemas.SplitShare(user_id=3, value=33.34),
    ]
    splits = compute_percentage_split(100.00, details, payer_id=1)
    assert round2(sum(s.owed_amount for s in splits)) == 100.00
    assert by_user(splits)[3][1] == 33.34

def test_shares_split_is_proportional():
    details = [schemas.SplitShare(user_id=1, value=2), schemas.SplitShare(user_id=2, value=1)]
    splits = compute_shares_split(45.00, details, payer_id=1)
    rows = by_user(splits)
    assert rows[1] == (45.00, 30.00)
    assert rows[2] == (0, 15.00)

def test_shares_split_with_zero_total_shares_is_empty():
    details = [schemas.SplitShare(user_id=1, value=0), schemas.SplitShare(user_id=2, value=0)]
    assert compute_shares_split(45.00, details, payer_id=1) == []

def test_calculate_splits_dispatches_on_method():
    expense = schemas.ExpenseCreate(
        description="Taxi",
        total_amount=10.00,
        split_method="equal",
        participants=[1, 2, 3],
        paid_by=2
    )
    splits = calculate_splits(expense)
    assert by_user(splits)[2] == (10.00, 3.33)
    assert round2(sum(s.paid_amount for s in splits)) == 10.00
