ACCOUNT = {
    "server": "demo.broker.net",
    "username": "trader1",
    "password": "brokerpw",
    "account_number": "ACC-001",
    "status": "connected",
}


def test_create_and_list_account(client, register):
    user, headers = register("acct@pinebridge.com")

    r = client.post("/api/trading-accounts", json=ACCOUNT, headers=headers)
    assert r.status_code == 201
    account = r.json()
    assert account["status"] == "connected"
    assert account["user_id"] == user["id"]
    # broker credential never comes back
    assert "password" not in account

    r = client.get("/api/trading-accounts", headers=headers)
    assert r.status_code == 200
    assert [a["account_number"] for a in r.json()] == ["ACC-001"]

    r = client.get(f"/api/trading-accounts/{account['id']}", headers=headers)
    assert r.status_code == 200


def test_status_defaults_to_disconnected(client, register):
    _, headers = register("dflt@pinebridge.com")
    payload = {k: v for k, v in ACCOUNT.items() if k != "status"}
    r = client.post("/api/trading-accounts", json=payload, headers=headers)
    assert r.status_code == 201
    assert r.json()["status"] == "disconnected"


def test_unknown_status_rejected(client, register):
    _, headers = register("bad@pinebridge.com")
    r = client.post("/api/trading-accounts", json={**ACCOUNT, "status": "online"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"


def test_account_validation_messages(client, register):
    _, headers = register("short@pinebridge.com")
    r = client.post(
        "/api/trading-accounts",
        json={"server": "x", "username": "y", "password": "12345", "account_number": "1"},
        headers=headers,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert fields == {"server", "username", "password", "account_number"}


def test_non_owner_cannot_delete_account(client, register):
    _, owner = register("own@pinebridge.com")
    _, other = register("oth@pinebridge.com")
    aid = client.post("/api/trading-accounts", json=ACCOUNT, headers=owner).json()["id"]

    assert client.delete(f"/api/trading-accounts/{aid}", headers=other).status_code == 403
    assert client.get(f"/api/trading-accounts/{aid}", headers=other).status_code == 403
    assert client.get(f"/api/trading-accounts/{aid}", headers=owner).status_code == 200


def test_owner_and_admin_delete_accounts(client, register, admin):
    _, owner = register("del@pinebridge.com")
    _, admin_headers = admin
    first = client.post("/api/trading-accounts", json=ACCOUNT, headers=owner).json()["id"]
    second = client.post("/api/trading-accounts", json={**ACCOUNT, "account_number": "ACC-002"}, headers=owner).json()["id"]

    assert client.delete(f"/api/trading-accounts/{first}", headers=owner).status_code == 204
    assert client.delete(f"/api/trading-accounts/{second}", headers=admin_headers).status_code == 204
    assert client.get("/api/trading-accounts", headers=owner).json() == []

    # Deleting again should return 404
    assert client.delete(f"/api/trading-accounts/{first}", headers=owner).status_code == 404


def test_accounts_require_auth(client):
    assert client.get("/api/trading-accounts").status_code == 401
    assert client.delete("/api/trading-accounts/1").status_code == 401
