from datetime import datetime, timedelta

from conftest import headers_for
import models


def post_expense(client, actor, total, splits, group_id=None, currency="USD"):
    response = client.post("/expenses", headers=headers_for(actor), json={
        "description": "Shared",
        "total_amount": total,
        "currency": currency,
        "group_id": group_id,
        "split_method": "exact",
        "splits": [
            {"user_id": uid, "paid_amount": paid, "owed_amount": owed}
            for uid, paid, owed in splits
        ]
    })
    assert response.status_code == 200
    return response.json()

def test_friends_list_totals_per_currency(client, make_user, make_group):
    alice, bob, carol, dave = make_user("Alice"), make_user("Bob"), make_user("Carol"), make_user("Dave")
    group = make_group("Flat", [alice, bob, dave])
    post_expense(client, alice, 40.00, [(alice.id, 40.00, 20.00), (bob.id, 0, 20.00)], group_id=group.id)
    post_expense(client, carol, 30.00, [(alice.id, 0, 15.00), (carol.id, 30.00, 15.00)], currency="EUR")

    response = client.get("/friends", headers=headers_for(alice))
    assert response.status_code == 200
    data = response.json()

    assert data["you_are_owed"] == [{"currency": "USD", "amount": 20.00}]
    assert data["you_owe"] == [{"currency": "EUR", "amount": 15.00}]
    assert data["hidden"] == []

    friends = {f["name"]: f for f in data["visible"]}
    assert list(friends) == ["Bob", "Carol", "Dave"]
    assert friends["Bob"]["net"] == 20.00
    assert friends["Bob"]["currency"] == "USD"
    assert friends["Bob"]["group_breakdowns"] == [
        {"group_id": group.id, "group_name": "Flat", "amount": 20.00, "currency": "USD"}
    ]
    assert friends["Carol"]["net"] == -15.00
    assert friends["Carol"]["currency"] == "EUR"
    # Co-member with no balance yet
    assert friends["Dave"]["net"] == 0
    assert friends["Dave"]["group_breakdowns"] == []

def test_settled_idle_friends_are_hidden(client, db_session, make_user):
    alice, erin = make_user("Alice"), make_user("Erin")
    expense = post_expense(client, alice, 10.00, [(alice.id, 10.00, 5.00), (erin.id, 0, 5.00)])
    client.delete(f"/expenses/{expense['id']}", headers=headers_for(alice))

    fb = db_session.query(models.FriendBalance).first()
    fb.last_activity_at = datetime.utcnow() - timedelta(days=8)
    db_session.commit()

    data = client.get("/friends", headers=headers_for(alice)).json()
    assert data["visible"] == []
    assert [f["name"] for f in data["hidden"]] == ["Erin"]

def test_friend_detail(client, make_user, make_group):
    alice, bob = make_user("Alice"), make_user("Bob Stone")
    group = make_group("Flat", [alice, bob])
    post_expense(client, alice, 40.00, [(alice.id, 40.00, 20.00), (bob.id, 0, 20.00)], group_id=group.id)
    post_expense(client, bob, 12.00, [(alice.id, 0, 6.00), (bob.id, 12.00, 6.00)])

    response = client.get(f"/friends/{bob.id}", headers=headers_for(alice))
    assert response.status_code == 200
    data = response.json()
    assert data["friend"]["short_name"] == "Bob S."
    assert data["overall_net"] == 14.00
    assert data["currency"] == "USD"
    assert data["group_breakdowns"] == [
        {"group_id": group.id, "group_name": "Flat", "amount": 20.00, "currency": "USD"},
        {"group_id": None, "group_name": "Non-group", "amount": -6.00, "currency": "USD"},
    ]
    involvement = sorted(e["my_involvement"]["type"] for e in data["shared_expenses"])
    assert involvement == ["borrowed", "lent"]

    assert client.get("/friends/999", headers=headers_for(alice)).status_code == 404

def test_pair_balance_is_signed_for_the_viewer(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")
    post_expense(client, alice, 40.00, [(alice.id, 40.00, 20.00), (bob.id, 0, 20.00)])

    mine = client.get(f"/balances/{bob.id}", headers=headers_for(alice)).json()
    theirs = client.get(f"/balances/{alice.id}", headers=headers_for(bob)).json()

    assert mine["contexts"][0]["amount"] == 20.00
    assert theirs["contexts"][0]["amount"] == -20.00
    assert mine["aggregate"]["total_amount"] == -theirs["aggregate"]["total_amount"]

def test_pair_balance_edge_cases(client, make_user):
    alice, bob = make_user("Alice"), make_user("Bob")

    assert client.get(f"/balances/{alice.id}", headers=headers_for(alice)).status_code == 400
    assert client.get("/balances/999", headers=headers_for(alice)).status_code == 404

    # Strangers have no rows at all
    data = client.get(f"/balances/{bob.id}", headers=headers_for(alice)).json()
    assert data == {"friend_id": bob.id, "contexts": [], "by_currency": [], "aggregate": None}

def test_friend_detail_of_yourself_is_rejected(client, make_user):
    alice = make_user("Alice")
    response = client.get(f"/friends/{alice.id}", headers=headers_for(alice))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot view yourself as a friend"
