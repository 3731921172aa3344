import uuid

from tests.helpers import auth_headers, manager_headers

CARDS = "/fieldledger/bank-cards"


def _create_card(client, name="Main card", initial_balance="1000.00"):
    response = client.post(
        CARDS,
        json={"card_name": name, "bank_name": "Field Bank", "initial_balance": initial_balance},
        headers=manager_headers(),
    )
    assert response.status_code == 201
    return response.json()


def test_create_and_list_cards(client):
    card = _create_card(client)

    assert card["current_balance"] == "1000.00"
    assert card["created_by"] == "manager-1"
    listing = client.get(CARDS, headers=auth_headers("user-1")).json()
    assert [row["id"] for row in listing["rows"]] == [card["id"]]

    denied = client.post(
        CARDS, json={"card_name": "X", "bank_name": "Y"}, headers=auth_headers("user-1")
    )
    assert denied.status_code == 403


def test_manual_transactions_update_balance(client):
    card = _create_card(client)
    url = f"{CARDS}/{card['id']}/transactions"

    deposit = client.post(url, json={"transaction_type": "deposit", "amount": "200"}, headers=manager_headers())
    withdrawal = client.post(
        url, json={"transaction_type": "withdrawal", "amount": "300.00"}, headers=manager_headers()
    )

    assert deposit.status_code == 201
    assert deposit.json()["balance_after"] == "1200.00"
    assert withdrawal.json()["balance_after"] == "900.00"
    assert client.get(f"{CARDS}/{card['id']}", headers=auth_headers("user-1")).json()["current_balance"] == "900.00"

    zero = client.post(url, json={"transaction_type": "deposit", "amount": "0"}, headers=manager_headers())
    reserved = client.post(
        url,
        json={"transaction_type": "deposit", "amount": "5", "reference_type": "daily_report_staff"},
        headers=manager_headers(),
    )
    assert zero.status_code == 422
    assert reserved.status_code == 422


def test_transfer_between_cards(client):
    source = _create_card(client, name="Source", initial_balance="100.00")
    target = _create_card(client, name="Target", initial_balance="0")

    response = client.post(
        f"{CARDS}/transfers",
        json={"from_card_id": source["id"], "to_card_id": target["id"], "amount": "40"},
        headers=manager_headers(),
    )

    assert response.status_code == 201
    assert response.json()["outgoing"]["balance_after"] == "60.00"
    assert response.json()["incoming"]["balance_after"] == "40.00"
    assert response.json()["incoming"]["reference_id"] == source["id"]

    same = client.post(
        f"{CARDS}/transfers",
        json={"from_card_id": source["id"], "to_card_id": source["id"], "amount": "1"},
        headers=manager_headers(),
    )
    assert same.status_code == 422


def test_cash_box_rows_show_up_in_card_history(client):
    card = _create_card(client)
    payload = {
        "orders": [{"order_id": "A1"}],
        "staff": [
            {
                "staff_name": "Cash box",
                "work_status": "worked",
                "is_cash_box": True,
                "bank_card_id": card["id"],
                "amount_spent": "150",
            }
        ],
    }

    saved = client.put("/fieldledger/reports/2024-03-18", json=payload, headers=auth_headers("user-1"))
    history = client.get(f"{CARDS}/{card['id']}/transactions", headers=auth_headers("user-1")).json()["rows"]

    assert saved.json()["balances"] == {card["id"]: "850.00"}
    entries = [row for row in history if row["reference_type"] == "daily_report_staff"]
    assert len(entries) == 1
    assert entries[0]["transaction_type"] == "withdrawal"
    assert entries[0]["amount"] == "150.00"
    assert entries[0]["report_date"] == "2024-03-18"
    assert entries[0]["module_key"] == "daily_report"


def test_recompute_endpoints(client):
    card = _create_card(client, initial_balance="75.50")

    single = client.post(f"{CARDS}/{card['id']}/recompute", headers=auth_headers("user-1"))
    every = client.post(f"{CARDS}/recompute-all", headers=manager_headers())

    assert single.json()["balances"] == {card["id"]: "75.50"}
    assert every.json()["balances"][card["id"]] == "75.50"


def test_update_card(client):
    card = _create_card(client)

    response = client.patch(
        f"{CARDS}/{card['id']}", json={"card_name": "Renamed", "is_active": False}, headers=manager_headers()
    )

    assert response.status_code == 200
    assert response.json()["card_name"] == "Renamed"
    assert response.json()["is_active"] is False
    active = client.get(CARDS, params={"active_only": True}, headers=auth_headers("user-1")).json()
    assert active["rows"] == []


def test_unknown_card_returns_not_found(client):
    response = client.get(f"{CARDS}/{uuid.uuid4()}", headers=auth_headers("user-1"))

    assert response.status_code == 404
    assert response.json()["code"] == "BANK_CARD_NOT_FOUND"
