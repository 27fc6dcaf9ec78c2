import base64

VIDEO = base64.b64encode(b"short clip").decode()


def test_partner_lists_reel_user_orders_and_partner_ships(client, customer):
    partner = client.post("/api/auth/partner/register", json={
        "name": "Pat", "email": "pat@example.com", "password": "secret123", "brand_name": "PatCo",
    }).json()
    p_headers = {"Authorization": f"Bearer {partner['token']}"}
    reel = client.post("/api/reels/upload", json={"video": VIDEO, "price": 9.99}, headers=p_headers).json()["reel"]

    buyer = client.post("/api/auth/user/register", json={
        "username": "ulla", "email": "ulla@example.com", "password": "secret123",
    }).json()
    u_headers = {"Authorization": f"Bearer {buyer['token']}"}

    feed = client.get("/api/reels", params={"page": 1, "limit": 10}, headers=u_headers).json()
    assert reel["id"] in [r["id"] for r in feed["reels"]]

    placed = client.post("/api/orders", json={
        "reel_id": reel["id"], "quantity": 2, "customer_info": customer, "total_amount": 19.98,
    }, headers=u_headers)
    assert placed.status_code == 201
    order = placed.json()["order"]
    assert order["status"] == "pending"

    partner_orders = client.get("/api/orders/partner", headers=p_headers).json()
    assert [o["id"] for o in partner_orders] == [order["id"]]

    shipped = client.patch(f"/api/orders/{order['id']}/status", json={"status": "shipped"}, headers=p_headers)
    assert shipped.status_code == 200

    mine = client.get("/api/orders", headers=u_headers).json()
    assert mine[0]["status"] == "shipped"


def test_like_then_unlike(client, user, reel):
    liked = client.post(f"/api/reels/{reel['id']}/like", headers=user["headers"]).json()["reel"]
    assert liked["likes_count"] == 1
    assert liked["is_liked"] is True
    unliked = client.post(f"/api/reels/{reel['id']}/like", headers=user["headers"]).json()["reel"]
    assert unliked["likes_count"] == 0
    assert unliked["is_liked"] is False


def test_wrong_total_is_rejected(user, reel, place_order):
    r = place_order(user, reel, quantity=2, total=25.00)
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid total amount"}


def test_other_partner_cannot_touch_order(client, make_partner, user, reel, place_order):
    order = place_order(user, reel, quantity=2).json()["order"]
    rival = make_partner("Rival")
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "shipped"}, headers=rival["headers"])
    assert r.status_code == 403
