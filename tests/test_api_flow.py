import json

from loyalty.models.db.enums import OrderStatus


def _credentials(login, password="secret"):
    return {"login": login, "password": password}


def test_register_then_login(client):
    r = client.post("/api/user/register", json=_credentials("api_alice"))
    assert r.status_code == 200
    body = r.json()
    assert body["login"] == "api_alice"
    assert body["token_type"] == "Bearer"
    assert r.headers["Authorization"] == f"Bearer {body['token']}"

    r2 = client.post("/api/user/register", json=_credentials("api_alice"))
    assert r2.status_code == 409

    r3 = client.post("/api/user/login", json=_credentials("api_alice"))
    assert r3.status_code == 200
    assert r3.json()["token"] == body["token"]

    r4 = client.post("/api/user/login", json=_credentials("api_alice", "wrong"))
    assert r4.status_code == 401

    r5 = client.post("/api/user/login", json=_credentials("api_nobody"))
    assert r5.status_code == 401


def test_register_malformed_body(client):
    r = client.post("/api/user/register", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    r2 = client.post("/api/user/register", json={"login": "x"})
    assert r2.status_code == 400


def test_endpoints_require_auth(client):
    assert client.get("/api/user/orders").status_code == 401
    assert client.get("/api/user/balance").status_code == 401
    assert client.get("/api/user/orders", headers={"Authorization": "Bearer lp_bogus"}).status_code == 401


def test_order_upload_statuses(client, auth_header, user_factory, luhn_number):
    headers, _ = auth_header
    plain = {**headers, "Content-Type": "text/plain"}
    number = luhn_number()

    r = client.post("/api/user/orders", content=number, headers=plain)
    assert r.status_code == 202
    r2 = client.post("/api/user/orders", content=number, headers=plain)
    assert r2.status_code == 200

    other = user_factory()
    other_headers = {"Authorization": f"Bearer {other.api_key}", "Content-Type": "text/plain"}
    r3 = client.post("/api/user/orders", content=number, headers=other_headers)
    assert r3.status_code == 409

    r4 = client.post("/api/user/orders", content="12345678904", headers=plain)
    assert r4.status_code == 422

    r5 = client.post("/api/user/orders", json={"number": number}, headers=headers)
    assert r5.status_code == 400

    r6 = client.post("/api/user/orders", content="", headers=plain)
    assert r6.status_code == 400


def test_order_listing(client, auth_header, store, luhn_number):
    headers, user = auth_header
    assert client.get("/api/user/orders", headers=headers).status_code == 204

    plain = {**headers, "Content-Type": "text/plain"}
    first = luhn_number()
    second = luhn_number()
    client.post("/api/user/orders", content=first, headers=plain)
    client.post("/api/user/orders", content=second, headers=plain)
    store.apply_settlement(first, OrderStatus.PROCESSED, 50050)

    r = client.get("/api/user/orders", headers=headers)
    assert r.status_code == 200
    orders = {o["number"]: o for o in r.json()}
    assert orders[first]["status"] == "PROCESSED"
    assert orders[first]["accrual"] == 500.5
    assert "uploaded_at" in orders[first]
    assert orders[second]["status"] == "NEW"
    assert "accrual" not in orders[second]


def test_balance_and_withdrawals(client, auth_header, order_factory, luhn_number):
    headers, user = auth_header
    order_factory(user.id, luhn_number(), OrderStatus.PROCESSED, 50050)

    r = client.get("/api/user/balance", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"current": 500.5, "withdrawn": 0.0}

    assert client.get("/api/user/withdrawals", headers=headers).status_code == 204

    first_ref = luhn_number()
    r2 = client.post("/api/user/balance/withdraw", json={"order": first_ref, "sum": 420}, headers=headers)
    assert r2.status_code == 200

    r3 = client.post("/api/user/balance/withdraw", json={"order": luhn_number(), "sum": 90}, headers=headers)
    assert r3.status_code == 402

    r4 = client.post("/api/user/balance/withdraw", json={"order": "12345678904", "sum": 1}, headers=headers)
    assert r4.status_code == 422

    r5 = client.post("/api/user/balance/withdraw", json={"order": luhn_number(), "sum": 0}, headers=headers)
    assert r5.status_code == 422

    r6 = client.post("/api/user/balance/withdraw", content=b"{", headers={**headers, "Content-Type": "application/json"})
    assert r6.status_code == 400

    balance = client.get("/api/user/balance", headers=headers).json()
    assert balance == {"current": 80.5, "withdrawn": 420.0}

    second_ref = luhn_number()
    r7 = client.post("/api/user/balance/withdraw", json={"order": second_ref, "sum": 50.25}, headers=headers)
    assert r7.status_code == 200

    history = client.get("/api/user/withdrawals", headers=headers)
    assert history.status_code == 200
    rows = history.json()
    assert [row["order"] for row in rows] == [second_ref, first_ref]
    assert rows[0]["sum"] == 50.25
    assert rows[1]["sum"] == 420.0
    assert "processed_at" in rows[0]



def test_withdraw_sum_beyond_ledger_range(client, auth_header, order_factory, luhn_number):
    headers, user = auth_header
    order_factory(user.id, luhn_number(), OrderStatus.PROCESSED, 1000)

    for huge in (1e30, 1e20, -1e30):
        r = client.post("/api/user/balance/withdraw", json={"order": luhn_number(), "sum": huge}, headers=headers)
        assert r.status_code == 422

    assert client.get("/api/user/balance", headers=headers).json() == {"current": 10.0, "withdrawn": 0.0}


def test_json_endpoints_require_json_content_type(client, auth_header, luhn_number):
    headers, _ = auth_header
    text = {"Content-Type": "text/plain"}
    body = json.dumps(_credentials("api_plain_text"))

    assert client.post("/api/user/register", content=body, headers=text).status_code == 400
    assert client.post("/api/user/login", content=body, headers=text).status_code == 400
    # nothing was registered by the rejected request
    assert client.post("/api/user/register", json=_credentials("api_plain_text")).status_code == 200

    withdrawal = json.dumps({"order": luhn_number(), "sum": 1})
    r = client.post("/api/user/balance/withdraw", content=withdrawal, headers={**headers, **text})
    assert r.status_code == 400
    r2 = client.post("/api/user/balance/withdraw", content=withdrawal, headers=headers)
    assert r2.status_code == 400

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"

    detailed = client.get("/health/detailed").json()
    assert detailed["checks"]["database"] == "healthy"
    assert detailed["checks"]["accrual_worker"] == "disabled"
    assert "X-Request-ID" in r.headers
