def test_login_flow(client):
    resp = client.post("/login", json={"username": "admin", "password": "password"})
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True
    assert resp.headers.getlist("Set-Cookie")


def test_login_rejects_bad_password(client):
    resp = client.post("/login", json={"username": "admin", "password": "nope"})
    assert resp.status_code == 401
    data = resp.get_json()
    assert data["ok"] is False
    assert data["error"] == "auth"


def test_admin_routes_need_login(client):
    assert client.get("/api/orders").status_code == 401
    assert client.post("/api/desserts", json={"name": "Pie", "starting_stock": 5}).status_code == 401
    assert client.post("/api/menu/meals", json={"name": "Soup"}).status_code == 401


def test_logout_clears_session(admin_client):
    assert admin_client.get("/api/orders").status_code == 200
    admin_client.post("/logout")
    assert admin_client.get("/api/orders").status_code == 401
