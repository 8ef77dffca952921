import uuid

from fastapi.testclient import TestClient

from app.middleware.auth import CurrentUser


def _create(client: TestClient, **overrides):
    payload = {"type": "i_owe", "person_name": "Aziz", "amount": 100}
    payload.update(overrides)
    return client.post("/debts/", json=payload)


def test_list_debts_empty(client: TestClient):
    response = client.get("/debts/")
    assert response.status_code == 200
    assert response.json() == []


def test_create_and_get_debt(client: TestClient, user_id):
    response = _create(client, money_transferred=True, due_date="2026-12-01")
    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == user_id
    assert data["status"] == "active"
    assert data["remaining_amount"] == 100
    assert data["due_date"] == "2026-12-01"
    assert data["related_transaction_id"] is not None

    response = client.get(f"/debts/{data['id']}")
    assert response.status_code == 200
    assert response.json()["payments"] == []


def test_create_validation_error_shape(client: TestClient):
    response = _create(client, amount=-1)
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["detail"] == "Amount must be greater than 0"


def test_pay_flow(client: TestClient):
    debt_id = _create(client).json()["id"]

    response = client.post(f"/debts/{debt_id}/pay", json={"amount": 60, "note": "first"})
    assert response.status_code == 201
    assert response.json()["amount"] == 60

    response = client.post(f"/debts/{debt_id}/pay", json={"amount": 150})
    assert response.status_code == 400
    assert response.json()["remaining_amount"] == 40

    response = client.post(f"/debts/{debt_id}/pay-full")
    assert response.status_code == 201
    assert response.json()["amount"] == 40

    debt = client.get(f"/debts/{debt_id}").json()
    assert debt["status"] == "paid"
    assert [p["amount"] for p in debt["payments"]] == [40, 60]

    response = client.post(f"/debts/{debt_id}/pay", json={"amount": 1})
    assert response.status_code == 422


def test_delete_payment_reopens_and_recounts(client: TestClient):
    debt_id = _create(client).json()["id"]
    payment_id = client.post(f"/debts/{debt_id}/pay-full").json()["id"]
    assert client.get("/subscription/").json()["limits"]["debts"]["used"] == 0

    response = client.delete(f"/debts/payments/{payment_id}")
    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert response.json()["remaining_amount"] == 100
    assert client.get("/subscription/").json()["limits"]["debts"]["used"] == 1


def test_debt_limit_returns_upgrade_details(client: TestClient):
    for i in range(5):
        assert _create(client, person_name=f"P{i}").status_code == 201

    response = _create(client, person_name="Sixth")
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "DEBT_LIMIT_EXCEEDED"
    assert body["limit"] == 5
    assert body["current_usage"] == 5


def test_summary_and_filters(client: TestClient):
    _create(client, amount=100)
    other = _create(client, type="owed_to_me", person_name="Bek", amount=300).json()
    client.post(f"/debts/{other['id']}/cancel")

    summary = client.get("/debts/summary").json()
    assert summary["total_i_owe"] == 100
    assert summary["total_owed_to_me"] == 0
    assert summary["net_balance"] == -100

    cancelled = client.get("/debts/", params={"status": "cancelled"}).json()
    assert [d["person_name"] for d in cancelled] == ["Bek"]
    owed = client.get("/debts/", params={"type": "owed_to_me"}).json()
    assert len(owed) == 1


def test_update_and_delete(client: TestClient):
    debt_id = _create(client).json()["id"]

    response = client.put(f"/debts/{debt_id}", json={"description": "rent"})
    assert response.status_code == 200
    assert response.json()["description"] == "rent"

    response = client.delete(f"/debts/{debt_id}")
    assert response.status_code == 204
    assert client.get(f"/debts/{debt_id}").status_code == 404


def test_batch_create(client: TestClient):
    response = client.post("/debts/batch", json={"items": [
        {"type": "i_owe", "person_name": "Aziz", "amount": 10},
        {"type": "lent", "person_name": "Bek", "amount": 10},
    ]})
    assert response.status_code == 201
    data = response.json()
    assert len(data["created"]) == 1
    assert data["failed"] == [{"index": 1, "error": "Invalid debt type: lent"}]


def test_other_users_debt_is_forbidden(client: TestClient, current_user):
    debt_id = _create(client).json()["id"]
    payment_id = client.post(f"/debts/{debt_id}/pay", json={"amount": 10}).json()["id"]

    intruder = str(uuid.uuid4())
    current_user["user"] = CurrentUser(id=intruder, identifier=intruder)

    assert client.get(f"/debts/{debt_id}").status_code == 403
    assert client.post(f"/debts/{debt_id}/pay", json={"amount": 10}).status_code == 403
    assert client.delete(f"/debts/payments/{payment_id}").status_code == 403
    assert client.get("/debts/").json() == []
