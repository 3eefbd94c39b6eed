import main


def test_stats_counts(client, raw):
    raw.users.insert_many([
        {"email": "a@example.com", "role": "admin"},
        {"email": "s@example.com", "role": "seller"},
        {"email": "u1@example.com", "role": "user"},
        {"email": "u2@example.com", "role": "user"},
    ])
    raw.listings.insert_many([{"name": "Rex"}, {"name": "Tom"}])
    raw.orders.insert_one({"email": "u1@example.com"})

    res = client.get("/admin/stats")
    assert res.json() == {
        "totalUsers": 4,
        "totalListings": 2,
        "totalOrders": 1,
        "usersByRole": {"user": 2, "seller": 1, "admin": 1},
    }


def test_setup_promotes_existing_user(client, raw):
    raw.users.insert_one({"email": "boss@example.com", "role": "user"})
    res = client.post("/admin/setup", json={"email": "boss@example.com", "secretKey": main.ADMIN_SETUP_SECRET})
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert raw.users.find_one({"email": "boss@example.com"})["role"] == "admin"


def test_setup_unknown_email_is_not_found(client):
    res = client.post("/admin/setup", json={"email": "ghost@example.com", "secretKey": main.ADMIN_SETUP_SECRET})
    assert res.status_code == 404


def test_setup_wrong_secret_is_forbidden(client, raw):
    raw.users.insert_one({"email": "boss@example.com", "role": "user"})
    for email in ("boss@example.com", "ghost@example.com"):
        res = client.post("/admin/setup", json={"email": email, "secretKey": "guess"})
        assert res.status_code == 403
    assert client.post("/admin/setup", json={"email": "boss@example.com"}).status_code == 403
    assert raw.users.find_one({"email": "boss@example.com"})["role"] == "user"


def test_seed_demo_user_is_idempotent(client, raw):
    first = client.post("/seed/demo-user")
    assert first.status_code == 200
    assert first.json()["email"] == main.DEMO_EMAIL
    assert first.json()["password"] == main.DEMO_PASSWORD
    created = raw.users.find_one({"email": main.DEMO_EMAIL})
    assert created["role"] == "user"
    assert created["status"] == "active"

    raw.users.update_one({"email": main.DEMO_EMAIL}, {"$set": {"role": "seller"}})
    client.post("/seed/demo-user")

    assert raw.users.count_documents({"email": main.DEMO_EMAIL}) == 1
    refreshed = raw.users.find_one({"email": main.DEMO_EMAIL})
    assert refreshed["role"] == "user"
    assert refreshed["createdAt"] == created["createdAt"]
