from conftest import headers_for
import models


def exact_payload(total, splits, group_id=None, **extra):
    payload = {
        "description": "Lunch",
        "total_amount": total,
        "currency": "USD",
        "date": "2025-03-01",
        "group_id": group_id,
        "split_method": "exact",
        "splits": [
            {"user_id": uid, "paid_amount": paid, "owed_amount": owed}
            for uid, paid, owed in splits
        ]
    }
    payload.update(extra)
    return payload

def test_create_expense_with_explicit_splits(client, db_session, make_user, make_group):
    alice, bob = make_user("Alice"), make_user("Bob")
    group = make_group("Lunch Club", [alice, bob])

    response = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(20.00, [(alice.id, 20.00, 10.00), (bob.id, 0, 10.00)], group_id=group.id)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_amount"] == 20.00
    assert data["paid_by_id"] == alice.id
    assert data["payer_count"] == 1
    assert data["split_count"] == 2
    assert data["is_settlement"] is False

    details = client.get(f"/expenses/{data['id']}", headers=headers_for(bob)).json()
    assert details["group_name"] == "Lunch Club"
    assert details["payer_name"] == "Alice"
    by_user = {s["user_id"]: s for s in details["splits"]}
    assert by_user[bob.id]["user_name"] == "You"
    assert by_user[bob.id]["net_amount"] == -10.00
    assert by_user[alice.id]["net_amount"] == 10.00

def test_create_expense_from_equal_split_intent(client, make_user):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")

    response = client.post("/expenses", headers=headers_for(alice), json={
        "description": "Taxi",
        "total_amount": 10.00,
        "split_method": "equal",
        "participants": [alice.id, bob.id, carol.id],
        "paid_by": alice.id
    })
    assert response.status_code == 200
    expense_id = response.json()["id"]

    details = client.get(f"/expenses/{expense_id}", headers=headers_for(alice)).json()
    owed = sorted(s["owed_amount"] for s in details["splits"])
    assert owed == [3.33, 3.33, 3.34]
    assert details["date"]  # defaults to today

    balances = client.get(f"/balances/{bob.id}", headers=headers_for(alice)).json()
    assert balances["by_currency"] == [{"currency": "USD", "amount": 3.33}]

def test_create_expense_from_shares_with_multiple_payers(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")

    response = client.post("/expenses", headers=headers_for(alice), json={
        "description": "Cabin",
        "total_amount": 300.00,
        "currency": "eur",
        "split_method": "shares",
        "split_details": [{"user_id": alice.id, "value": 1}, {"user_id": bob.id, "value": 2}],
        "payers": [{"user_id": alice.id, "amount": 250.00}, {"user_id": bob.id, "amount": 50.00}]
    })
    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "EUR"
    assert data["is_multi_payer"] is True
    assert data["paid_by_id"] == alice.id

    # Alice paid 250 and owes 100; Bob paid 50 and owes 200
    balances = client.get(f"/balances/{alice.id}", headers=headers_for(bob)).json()
    assert balances["contexts"] == [
        {"group_id": None, "group_name": "Non-group", "amount": -150.00, "currency": "EUR"}
    ]

def test_split_mismatch_is_rejected(client, db_session, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")

    response = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(30.00, [(alice.id, 30.00, 10.00), (bob.id, 0, 10.00)])
    )
    assert response.status_code == 400
    assert "don't match total" in response.json()["detail"]
    assert db_session.query(models.Expense).count() == 0

def test_unknown_participant_is_not_found(client, make_user):
    alice = make_user("Alice")
    response = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(10.00, [(alice.id, 10.00, 5.00), (9999, 0, 5.00)])
    )
    assert response.status_code == 404

def test_non_member_cannot_add_to_group(client, make_user, make_group):
    alice, bob, mallory = make_user("Alice"), make_user("Bob"), make_user("Mallory")
    group = make_group("Flat", [alice, bob])

    response = client.post(
        "/expenses",
        headers=headers_for(mallory),
        json=exact_payload(10.00, [(mallory.id, 10.00, 5.00), (alice.id, 0, 5.00)], group_id=group.id)
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You are not a member of this group"

def test_missing_group_is_not_found(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    response = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(10.00, [(alice.id, 10.00, 5.00), (bob.id, 0, 5.00)], group_id=42)
    )
    assert response.status_code == 404

def test_delete_expense_reverses_balance(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    expense_id = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(40.00, [(alice.id, 40.00, 20.00), (bob.id, 0, 20.00)])
    ).json()["id"]

    response = client.delete(f"/expenses/{expense_id}", headers=headers_for(bob))
    assert response.status_code == 200

    balances = client.get(f"/balances/{bob.id}", headers=headers_for(alice)).json()
    assert balances["contexts"] == []
    assert balances["aggregate"]["total_amount"] == 0

    again = client.delete(f"/expenses/{expense_id}", headers=headers_for(bob))
    assert again.status_code == 400
    assert again.json()["detail"] == "Expense already deleted"

    assert client.delete("/expenses/999", headers=headers_for(bob)).status_code == 404

def test_outsider_cannot_delete_non_group_expense(client, make_user):
    alice, bob, mallory = make_user("Alice"), make_user("Bob"), make_user("Mallory")
    expense_id = client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(40.00, [(alice.id, 40.00, 20.00), (bob.id, 0, 20.00)])
    ).json()["id"]

    assert client.delete(f"/expenses/{expense_id}", headers=headers_for(mallory)).status_code == 403
    assert client.get(f"/expenses/{expense_id}", headers=headers_for(mallory)).status_code == 403

def test_settlement_endpoint(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    client.post(
        "/expenses",
        headers=headers_for(alice),
        json=exact_payload(100.00, [(alice.id, 100.00, 50.00), (bob.id, 0, 50.00)])
    )

    response = client.post("/settlements", headers=headers_for(bob), json={
        "payer_id": bob.id, "payee_id": alice.id, "amount": 50.00
    })
    assert response.status_code == 200
    data = response.json()
    assert data["is_settlement"] is True
    assert data["description"] == "Settlement"
    assert data["split_count"] == 1

    balances = client.get(f"/balances/{alice.id}", headers=headers_for(bob)).json()
    assert balances["contexts"] == []

def test_settlement_validation(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    same = client.post("/settlements", headers=headers_for(alice), json={
        "payer_id": alice.id, "payee_id": alice.id, "amount": 5.00
    })
    assert same.status_code == 400
    negative = client.post("/settlements", headers=headers_for(alice), json={
        "payer_id": alice.id, "payee_id": bob.id, "amount": -5.00
    })
    assert negative.status_code == 400

def test_group_expenses_newest_first_with_involvement(client, make_user, make_group):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    group = make_group("Trip", [alice, bob, carol])

    client.post("/expenses", headers=headers_for(alice), json=exact_payload(
        30.00, [(alice.id, 30.00, 15.00), (bob.id, 0, 15.00)], group_id=group.id, date="2025-01-01"
    ))
    client.post("/expenses", headers=headers_for(bob), json=exact_payload(
        20.00, [(bob.id, 20.00, 10.00), (carol.id, 0, 10.00)], group_id=group.id, date="2025-02-01T10:00:00.000Z"
    ))

    response = client.get(f"/groups/{group.id}/expenses", headers=headers_for(bob))
    assert response.status_code == 200
    items = response.json()
    assert [item["date"] for item in items] == ["2025-02-01", "2025-01-01"]
    assert items[0]["my_involvement"] == {"type": "lent", "amount": 10.00}
    assert items[1]["my_involvement"] == {"type": "borrowed", "amount": 15.00}
    assert items[1]["paid_by_name"] == "Alice"

    alice_view = client.get(f"/groups/{group.id}/expenses", headers=headers_for(alice)).json()
    assert alice_view[0]["my_involvement"]["type"] == "not_involved"

def test_requires_authentication(client):
    assert client.get("/expenses/1").status_code == 401
    bad = client.get("/expenses/1", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401

def test_non_finite_amounts_are_rejected(client, db_session, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    headers = {**headers_for(alice), "Content-Type": "application/json"}
    bodies = [
        '{"description": "Bad", "total_amount": NaN, "participants": [%d, %d], "paid_by": %d}' % (alice.id, bob.id, alice.id),
        '{"description": "Bad", "total_amount": Infinity, "participants": [%d, %d], "paid_by": %d}' % (alice.id, bob.id, alice.id),
        '{"description": "Bad", "total_amount": 10, "split_method": "exact", "splits": ['
        '{"user_id": %d, "paid_amount": 10, "owed_amount": NaN}, '
        '{"user_id": %d, "paid_amount": 0, "owed_amount": 5}]}' % (alice.id, bob.id),
        '{"description": "Bad", "total_amount": 10, "split_method": "shares", "paid_by": %d, '
        '"split_details": [{"user_id": %d, "value": -Infinity}]}' % (alice.id, bob.id),
    ]
    for body in bodies:
        response = client.post("/expenses", headers=headers, content=body)
        assert response.status_code == 422

    settlement = client.post(
        "/settlements",
        headers=headers,
        content='{"payer_id": %d, "payee_id": %d, "amount": Infinity}' % (bob.id, alice.id)
    )
    assert settlement.status_code == 422
    assert db_session.query(models.Expense).count() == 0

def test_duplicate_users_in_split_intent_are_rejected(client, db_session, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")

    response = client.post("/expenses", headers=headers_for(alice), json={
        "description": "Pizza",
        "total_amount": 30.00,
        "participants": [alice.id, bob.id, bob.id],
        "paid_by": alice.id
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Each user may appear only once in participants"

    response = client.post("/expenses", headers=headers_for(alice), json={
        "description": "Pizza",
        "total_amount": 30.00,
        "split_method": "percentage",
        "split_details": [{"user_id": bob.id, "value": 50}, {"user_id": bob.id, "value": 50}],
        "paid_by": alice.id
    })
    assert response.status_code == 400

    response = client.post("/expenses", headers=headers_for(alice), json={
        "description": "Pizza",
        "total_amount": 30.00,
        "participants": [alice.id, bob.id],
        "payers": [{"user_id": alice.id, "amount": 15.00}, {"user_id": alice.id, "amount": 15.00}]
    })
    assert response.status_code == 400
    assert db_session.query(models.Expense).count() == 0

def test_paid_by_must_be_a_payer(client, db_session, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")

    unknown = client.post("/expenses", headers=headers_for(alice), json=exact_payload(
        20.00, [(alice.id, 20.00, 10.00), (bob.id, 0, 10.00)], paid_by=999
    ))
    assert unknown.status_code == 400

    not_paying = client.post("/expenses", headers=headers_for(alice), json=exact_payload(
        20.00, [(alice.id, 20.00, 10.00), (bob.id, 0, 10.00)], paid_by=bob.id
    ))
    assert not_paying.status_code == 400
    assert not_paying.json()["detail"] == "paid_by must be one of the users who paid"
    assert db_session.query(models.Expense).count() == 0

    response = client.post("/expenses", headers=headers_for(alice), json=exact_payload(
        20.00, [(alice.id, 12.00, 10.00), (bob.id, 8.00, 10.00)], paid_by=bob.id
    ))
    assert response.status_code == 200
    assert response.json()["paid_by_id"] == bob.id

def test_detail_net_amounts_are_whole_cents(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    expense_id = client.post("/expenses", headers=headers_for(alice), json=exact_payload(
        0.40, [(alice.id, 0.30, 0.10), (bob.id, 0.10, 0.30)]
    )).json()["id"]

    details = client.get(f"/expenses/{expense_id}", headers=headers_for(alice)).json()
    nets = {s["user_id"]: s["net_amount"] for s in details["splits"]}
    assert nets == {alice.id: 0.20, bob.id: -0.20}
