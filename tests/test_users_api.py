from conftest import GOVT_EMAIL, GOVT_PASSWORD, GOVT_WALLET, auth, wallet


def signup_payload(**overrides):
    payload = {
        "name": "Jane Wanjiku",
        "email": "jane@example.com",
        "contact": "+254711111111",
        "address": "4 Moi Avenue",
        "city": "Mombasa",
        "postalCode": "80100",
        "walletAddress": wallet(900),
    }
    payload.update(overrides)
    return payload


async def test_signup_returns_token_and_user(client):
    resp = await client.post("/api/signup", json=signup_payload(email="Jane@Example.com"))
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "jane@example.com"
    assert body["user"]["role"] == "user"


async def test_signup_requires_every_field(client):
    resp = await client.post("/api/signup", json=signup_payload(city=""))
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "All fields are required"}


async def test_signup_rejects_bad_email_and_wallet(client):
    resp = await client.post("/api/signup", json=signup_payload(email="not-an-email"))
    assert resp.status_code == 400
    assert "email" in resp.json()["message"]

    resp = await client.post("/api/signup", json=signup_payload(walletAddress="0x1234"))
    assert resp.status_code == 400
    assert "wallet" in resp.json()["message"]


async def test_email_is_unique_case_insensitively(client):
    assert (await client.post("/api/signup", json=signup_payload())).status_code == 201
    resp = await client.post(
        "/api/signup", json=signup_payload(email="JANE@example.com", walletAddress=wallet(901))
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "User with this email already exists"


async def test_wallet_is_unique(client):
    assert (await client.post("/api/signup", json=signup_payload())).status_code == 201
    resp = await client.post(
        "/api/signup",
        json=signup_payload(email="other@example.com", walletAddress=wallet(900).upper().replace("0X", "0x")),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "User with this wallet address already exists"


async def test_login_wallet_user_and_last_login(client):
    await client.post("/api/signup", json=signup_payload())
    resp = await client.post("/api/login", json={"email": "JANE@example.com", "password": "anything"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    profile = (await client.get("/api/profile", headers=auth(token))).json()["user"]
    assert profile["lastLogin"] is not None


async def test_login_checks_stored_password(client):
    await client.post("/api/signup", json=signup_payload(password="hunter22"))
    resp = await client.post("/api/login", json={"email": "jane@example.com", "password": "nope"})
    assert resp.status_code == 401
    resp = await client.post("/api/login", json={"email": "jane@example.com", "password": "hunter22"})
    assert resp.status_code == 200


async def test_login_errors(client):
    resp = await client.post("/api/login", json={"email": "x@example.com"})
    assert resp.status_code == 400
    resp = await client.post("/api/login", json={"email": "ghost@example.com", "password": "pw"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


async def test_only_one_government_registrar(client, government):
    resp = await client.post(
        "/api/register_govt",
        json={"walletAddress": wallet(777), "password": "another", "email": "second@gov.ke"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Government user already exists"


async def test_government_login_requires_password(client, government):
    resp = await client.post("/api/login", json={"email": GOVT_EMAIL, "password": "wrong"})
    assert resp.status_code == 401
    resp = await client.post("/api/login", json={"email": GOVT_EMAIL, "password": GOVT_PASSWORD})
    assert resp.json()["user"]["role"] == "government"
    assert resp.json()["user"]["walletAddress"] == GOVT_WALLET


async def test_register_govt_requires_password(client):
    resp = await client.post("/api/register_govt", json={"walletAddress": GOVT_WALLET})
    assert resp.status_code == 400


async def test_profile_requires_token(client):
    resp = await client.get("/api/profile")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Access token required"}

    resp = await client.get("/api/profile", headers=auth("garbage"))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Invalid or expired token"


async def test_profile_update_ignores_blank_and_protected_fields(client, make_user):
    user = await make_user("Kamau")
    resp = await client.put(
        "/api/profile",
        json={"name": "Kamau N.", "city": "  ", "postalCode": "00200", "email": "hijack@example.com"},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    profile = resp.json()["user"]
    assert profile["name"] == "Kamau N."
    assert profile["city"] == "Nairobi"
    assert profile["postalCode"] == "00200"
    assert profile["email"] == user["email"]


async def test_user_listing_is_government_only(client, make_user, government):
    user = await make_user()
    await make_user("Otieno")

    resp = await client.get("/api/users", headers=user["headers"])
    assert resp.status_code == 403

    resp = await client.get("/api/users", headers=government["headers"])
    assert resp.status_code == 200
    users = resp.json()["users"]
    assert len(users) == 2
    assert all(u["role"] == "user" for u in users)


async def test_send_notification(client, make_user):
    user = await make_user()
    resp = await client.post("/api/send_notification", json={"email": "x@example.com"}, headers=user["headers"])
    assert resp.status_code == 400

    resp = await client.post(
        "/api/send_notification",
        json={"email": "x@example.com", "message": "Hello", "phoneNumber": "+254700000001"},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True
