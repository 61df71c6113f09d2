from conftest import ADMIN


def test_validate_subtotal_promo(client, promos):
    resp = client.get("/api/promos/validate", params={"code": "save10", "subtotal": 12500})
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["promo"]["code"] == "SAVE10"
    assert body["discount"] == 1250.0


def test_validate_delivery_promo_reports_no_subtotal_discount(client, promos):
    resp = client.get("/api/promos/validate", params={"code": "FREESHIP", "subtotal": 12500})
    assert resp.status_code == 200
    assert resp.json()["discount"] == 0.0


def test_validate_unknown_code(client, promos):
    resp = client.get("/api/promos/validate", params={"code": "NOPE", "subtotal": 100})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Promo NOPE not found"


def test_validate_below_minimum(client, promos):
    resp = client.get("/api/promos/validate", params={"code": "FREESHIP", "subtotal": 9000})
    assert resp.status_code == 400
    assert "at least" in resp.json()["error"]


def test_admin_routes_need_secret(client, promos):
    assert client.get("/api/promos").status_code == 401
    assert client.get("/api/promos", headers={"x-admin-secret": "wrong"}).status_code == 401


def test_list_promos(client, promos):
    resp = client.get("/api/promos", headers=ADMIN)
    assert resp.status_code == 200
    assert {p["code"] for p in resp.json()["promos"]} == {"SAVE10", "FREESHIP"}


def test_create_promo_uppercases_code(client, db):
    resp = client.post("/api/promos", headers=ADMIN, json={
        "code": "glow20", "discount_type": "percent", "value": 20, "expires_at": "",
    })
    assert resp.status_code == 201
    promo = resp.json()["promo"]
    assert promo["code"] == "GLOW20"
    assert promo["uses"] == 0
    assert promo["expires_at"] is None


def test_create_duplicate_promo(client, promos):
    resp = client.post("/api/promos", headers=ADMIN, json={"code": "SAVE10", "value": 5})
    assert resp.status_code == 409


def test_percent_over_100_rejected(client, db):
    resp = client.post("/api/promos", headers=ADMIN, json={"code": "HUGE", "discount_type": "percent", "value": 150})
    assert resp.status_code == 422


def test_toggle_and_delete_promo(client, promos):
    resp = client.put("/api/promos/save10", headers=ADMIN, json={"active": False})
    assert resp.status_code == 200
    assert resp.json()["promo"]["active"] is False

    resp = client.get("/api/promos/validate", params={"code": "SAVE10", "subtotal": 12500})
    assert resp.status_code == 400

    assert client.delete("/api/promos/SAVE10", headers=ADMIN).json() == {"deleted": True}
    assert client.delete("/api/promos/SAVE10", headers=ADMIN).status_code == 404
