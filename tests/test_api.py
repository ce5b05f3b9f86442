from decimal import Decimal


def _create_account(client, name="Main Checking", currency="USD", balance="1000.00"):
    response = client.post("/accounts/", json={
        "account_name": name, "account_type": "CHECKING", "currency": currency, "initial_balance": balance
    })
    assert response.status_code == 201
    return response.json()["data"]["id"]


def test_root(client):
    assert client.get("/").json() == "Server is running."


def test_missing_user_header_is_unauthorized(client):
    response = client.get("/accounts/", headers={"X-User-Id": ""})

    assert response.status_code == 401
    assert response.json() == {"success": False, "data": None, "error": "Unauthorized."}


def test_unknown_user_is_unauthorized(client):
    response = client.get("/dashboard/", headers={"X-User-Id": "5f0c6b8e-3c1f-4a43-9e55-0d4b7c1b2a99"})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized."


def test_malformed_user_header_is_unauthorized(client):
    response = client.get("/goals/", headers={"X-User-Id": "not-a-uuid"})

    assert response.status_code == 401


def test_invalid_payload_uses_envelope(client):
    response = client.post("/transactions/", json={
        "account_id": 1, "transaction_type": "EXPENSE", "amount": "-5", "transaction_date": "2026-10-18"
    })

    assert response.status_code == 422
    assert response.json() == {"success": False, "data": None, "error": "Invalid payload."}


def test_expense_flow(client):
    account_id = _create_account(client)

    created = client.post("/transactions/", json={
        "account_id": account_id, "transaction_type": "EXPENSE", "amount": "200.00", "transaction_date": "2026-10-18"
    })
    assert created.status_code == 201
    assert created.json()["success"] is True
    assert created.json()["data"]["transaction_id"]

    balances = client.get("/accounts/balances").json()
    assert balances["success"] is True
    assert Decimal(balances["data"][0]["current_balance"]) == Decimal("800.00")


def test_transfer_flow(client):
    usd_id = _create_account(client, name="Dollar Checking")
    birr_id = _create_account(client, name="Birr Savings", currency="BIRR", balance="0")

    response = client.post("/transactions/", json={
        "account_id": usd_id, "destination_account_id": birr_id, "transaction_type": "TRANSFER",
        "amount": "100.00", "transaction_date": "2026-10-18", "exchange_rate": "120"
    })
    assert response.status_code == 201

    balances = {b["account_id"]: Decimal(b["current_balance"]) for b in client.get("/accounts/balances").json()["data"]}
    assert balances == {usd_id: Decimal("900.00"), birr_id: Decimal("12000.00")}

    page = client.get("/transactions/").json()["data"]
    assert len(page["items"]) == 1
    assert page["items"][0]["transaction_type"] == "TRANSFER"
    assert page["has_next"] is False


def test_unsupported_pair_error(client):
    eur_id = _create_account(client, name="Euro", currency="EUR")
    gbp_id = _create_account(client, name="Pound", currency="GBP")

    response = client.post("/transactions/", json={
        "account_id": eur_id, "destination_account_id": gbp_id, "transaction_type": "TRANSFER",
        "amount": "10.00", "transaction_date": "2026-10-18", "exchange_rate": "1.1"
    })

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"] == "Transfers are only supported between USD and BIRR accounts."


def test_missing_rate_error(client):
    usd_id = _create_account(client, name="Dollar Checking")
    birr_id = _create_account(client, name="Birr Savings", currency="BIRR", balance="0")

    response = client.post("/transactions/", json={
        "account_id": usd_id, "destination_account_id": birr_id, "transaction_type": "TRANSFER",
        "amount": "10.00", "transaction_date": "2026-10-18"
    })

    assert response.status_code == 400
    assert response.json()["error"] == "An exchange rate is required for cross-currency transfers."


def test_not_found_uses_envelope(client):
    response = client.delete("/goals/404")

    assert response.status_code == 404
    assert response.json() == {"success": False, "data": None, "error": "Goal not found."}


def test_duplicate_category(client):
    payload = {"name": "Groceries", "category_type": "EXPENSE", "icon": "tag", "color": "#22c55e"}
    assert client.put("/categories/", json=payload).status_code == 200

    response = client.put("/categories/", json={**payload, "name": "GROCERIES"})

    assert response.status_code == 409
    assert response.json()["error"] == "Category name already exists."


def test_currency_settings_change_dashboard(client):
    _create_account(client, balance="10.00")
    assert Decimal(client.get("/dashboard/").json()["data"]["total_balance"]) == Decimal("10.00")

    response = client.put("/users/me/currency", json={"base_currency": "BIRR", "exchange_rate": "1,20"})
    assert response.status_code == 200
    assert response.json()["data"]["base_currency"] == "BIRR"

    dashboard = client.get("/dashboard/").json()["data"]
    assert dashboard["currency"] == "BIRR"
    assert Decimal(dashboard["total_balance"]) == Decimal("1200.00")


def test_invalid_currency_rate(client):
    response = client.put("/users/me/currency", json={"base_currency": "BIRR", "exchange_rate": "-1"})

    assert response.status_code == 400
    assert response.json()["error"] == "Exchange rate must be a positive number."


def test_budget_and_goal_endpoints(client):
    account_id = _create_account(client)
    category_id = int(client.put("/categories/", json={
        "name": "Groceries", "category_type": "EXPENSE", "icon": "tag", "color": "#22c55e"
    }).json()["data"]["id"])

    assert client.put("/budgets/", json={"category_id": category_id, "amount": "500"}).status_code == 200
    [budget] = client.get("/budgets/").json()["data"]
    assert Decimal(budget["limit"]) == Decimal("500.00")

    goal_id = client.put("/goals/", json={"name": "New Car", "target_amount": "1000"}).json()["data"]["id"]
    contribution = client.post(f"/goals/{goal_id}/contributions", json={"account_id": account_id, "amount": "100"})
    assert contribution.status_code == 200

    [goal] = client.get("/goals/").json()["data"]
    assert goal["icon"] == "car"
    assert Decimal(goal["current_amount"]) == Decimal("100.00")
    assert goal["progress_percent"] == 10.0


def test_register_user(client):
    response = client.post("/users/", json={"email": "Meron@Example.com", "name": "Meron"}, headers={"X-User-Id": ""})

    assert response.status_code == 201
    assert response.json()["data"]["email"] == "meron@example.com"
    assert response.json()["data"]["base_currency"] == "USD"


def test_register_invalid_email(client):
    response = client.post("/users/", json={"email": "not-an-email"})

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid payload."
