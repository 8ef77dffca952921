from fastapi.testclient import TestClient

from app.models import UsageLimit
from app.services.usage_accounting_service import UsageAccountingService


def _expense(client: TestClient, amount=1000):
    return client.post(
        "/transactions/",
        json={"amount": amount, "type": "expense", "category": "groceries"},
    )


def test_create_transaction_counts_usage(client: TestClient):
    response = _expense(client)
    assert response.status_code == 201
    assert response.json()["is_debt_related"] is False

    usage = client.get("/usage/").json()
    assert usage["transactions_count"] == 1


def test_transaction_limit(client: TestClient, db_session, user_id):
    _expense(client)
    record = db_session.query(UsageLimit).filter(UsageLimit.user_id == user_id).one()
    record.transactions_count = 50
    db_session.commit()

    response = _expense(client)
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "LIMIT_EXCEEDED"
    assert body["limit_type"] == "transactions"
    assert body["limit"] == 50


def test_delete_transaction_decrements_usage(client: TestClient):
    transaction_id = _expense(client).json()["id"]

    response = client.delete(f"/transactions/{transaction_id}")
    assert response.status_code == 204
    assert client.get("/usage/").json()["transactions_count"] == 0
    assert client.delete(f"/transactions/{transaction_id}").status_code == 404


def test_list_transactions_by_debt(client: TestClient):
    _expense(client)
    debt = client.post(
        "/debts/",
        json={"type": "owed_to_me", "person_name": "Bek", "amount": 500, "money_transferred": True},
    ).json()

    assert len(client.get("/transactions/").json()) == 2
    linked = client.get("/transactions/", params={"debt_id": debt["id"]}).json()
    assert len(linked) == 1
    assert linked[0]["type"] == "expense"
    assert linked[0]["category"] == "debt"


def test_usage_report_endpoints(client: TestClient):
    for _ in range(10):
        assert client.post("/usage/voice_inputs/increment").status_code == 200

    check = client.post("/usage/check", json={"limit_type": "voice_inputs"}).json()
    assert check["allowed"] is False
    assert check["remaining"] == 0

    response = client.post("/usage/voice_inputs/decrement")
    assert response.json()["voice_inputs_count"] == 9

    assert client.post("/usage/debts/increment").status_code == 400
    assert client.post("/usage/unknown/increment").status_code == 422


def test_root_and_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").status_code == 200


def test_debt_link_fields_are_ignored_on_create(client: TestClient):
    response = client.post(
        "/transactions/",
        json={
            "amount": 10,
            "type": "expense",
            "category": "x",
            "is_debt_related": True,
            "related_debt_id": "some-debt",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["is_debt_related"] is False
    assert data["related_debt_id"] is None
    assert client.get("/usage/").json()["transactions_count"] == 1

    client.delete(f"/transactions/{data['id']}")
    assert client.get("/usage/").json()["transactions_count"] == 0


def test_create_allowed_when_limit_check_fails(client: TestClient, monkeypatch):
    def broken_check_limit(self, *args, **kwargs):
        raise RuntimeError("usage store unavailable")

    monkeypatch.setattr(UsageAccountingService, "check_limit", broken_check_limit)

    response = _expense(client)
    assert response.status_code == 201
    assert response.json()["amount"] == 1000
