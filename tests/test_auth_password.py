from conftest import bearer, session_token, user_payload


def test_register_returns_profile_and_session(client):
    r = client.post("/api/register", json=user_payload("pw@pinebridge.com"))
    assert r.status_code == 201
    body = r.json()
    assert body["email"] == "pw@pinebridge.com"
    assert body["role"] == "user"
    assert "password" not in body and "password_hash" not in body
    assert session_token(r)

    me = client.get("/api/user", headers=bearer(session_token(r)))
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]


def test_register_short_password_rejected(client):
    r = client.post("/api/register", json=user_payload("short@pinebridge.com", password="12345"))
    assert r.status_code == 400
    data = r.json()
    assert data["detail"] == "Validation failed"
    messages = {e["field"]: e["message"] for e in data["errors"]}
    assert messages["password"] == "Password must be at least 6 characters"


def test_register_invalid_email_rejected(client):
    r = client.post("/api/register", json=user_payload("not-an-email"))
    assert r.status_code == 400
    assert any(e["field"] == "email" for e in r.json()["errors"])


def test_register_duplicate_email(client):
    assert client.post("/api/register", json=user_payload("dup@pinebridge.com")).status_code == 201
    r = client.post("/api/register", json=user_payload("dup@pinebridge.com"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already in use"


def test_register_cannot_claim_admin_role(client):
    r = client.post("/api/register", json=user_payload("sneaky@pinebridge.com", role="admin"))
    assert r.status_code == 201
    assert r.json()["role"] == "user"


def test_register_strips_markup_from_names(client):
    r = client.post("/api/register", json=user_payload("tags@pinebridge.com", first_name="<b>Dana</b>"))
    assert r.status_code == 201
    assert r.json()["first_name"] == "Dana"


def test_password_login_flow(client):
    client.post("/api/register", json=user_payload("login@pinebridge.com", password="secret"))

    # login with wrong password
    r2 = client.post("/api/login", json={"email": "login@pinebridge.com", "password": "wrongpw"})
    assert r2.status_code == 401
    assert r2.json()["detail"] == "Invalid email or password"

    # unknown email looks the same
    r3 = client.post("/api/login", json={"email": "nobody@pinebridge.com", "password": "secret"})
    assert r3.status_code == 401

    # login with correct password
    r4 = client.post("/api/login", json={"email": "login@pinebridge.com", "password": "secret"})
    assert r4.status_code == 201
    assert r4.json()["email"] == "login@pinebridge.com"
    assert session_token(r4)


def test_cookie_session_is_accepted(client):
    client.post("/api/register", json=user_payload("cookie@pinebridge.com"))
    # TestClient keeps the cookie from the register response
    r = client.get("/api/user")
    assert r.status_code == 200
    assert r.json()["email"] == "cookie@pinebridge.com"


def test_user_requires_authentication(client):
    r = client.get("/api/user")
    assert r.status_code == 401


def test_garbage_token_rejected(client):
    r = client.get("/api/user", headers=bearer("not-a-jwt"))
    assert r.status_code == 401


def test_logout_invalidates_session(client):
    r = client.post("/api/register", json=user_payload("bye@pinebridge.com"))
    headers = bearer(session_token(r))

    out = client.post("/api/logout", headers=headers)
    assert out.status_code == 200

    # token signature is still valid but the session row is gone
    assert client.get("/api/user", headers=headers).status_code == 401
    assert client.post("/api/logout", headers=headers).status_code == 401


def test_register_keeps_ampersand_in_names(client):
    r = client.post("/api/register", json=user_payload("amp@pinebridge.com", first_name="A&B"))
    assert r.status_code == 201
    assert r.json()["first_name"] == "A&B"
