import pytest
from bson import ObjectId

import orders
from schemas import ORDER_STATUSES


def test_place_order_snapshots_customer_info(client, user, reel, place_order, customer, mongo):
    r = place_order(user, reel, quantity=2, notes="  ring the bell ")
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["status"] == "pending"
    assert order["quantity"] == 2
    assert order["total_amount"] == pytest.approx(19.98)
    assert order["customer_info"] == customer
    assert order["notes"] == "ring the bell"
    assert order["reel"]["id"] == reel["id"]
    assert order["reel"]["partner"]["brand_name"] == "Pat's Goods"
    assert order["reel_available"] is True

    # changing the account later does not touch the snapshot
    mongo["account"].update_one({"_id": ObjectId(user["id"])}, {"$set": {"email": "new@example.com"}})
    assert client.get("/api/orders", headers=user["headers"]).json()[0]["customer_info"]["email"] == "alice@example.com"


@pytest.mark.parametrize("total", [19.97, 19.99])
def test_total_within_one_cent_is_accepted(user, reel, place_order, total):
    r = place_order(user, reel, quantity=2, total=total)
    assert r.status_code == 201


@pytest.mark.parametrize("total", [19.96, 20.0, 25.0, 0])
def test_total_outside_one_cent_is_rejected(user, reel, place_order, total):
    r = place_order(user, reel, quantity=2, total=total)
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid total amount"}


def test_totals_match_boundary():
    assert orders.totals_match(10.01, 10.0, 1)
    assert orders.totals_match(9.99, 10.0, 1)
    assert not orders.totals_match(10.011, 10.0, 1)
    assert orders.totals_match(29.97, 9.99, 3)


def test_order_validation(client, user, reel, place_order, customer):
    assert place_order(user, reel, quantity=0, total=0).status_code == 400
    r = client.post("/api/orders", json={"reel_id": reel["id"], "quantity": 1,
                                         "customer_info": {**customer, "phone": " "}, "total_amount": 9.99},
                    headers=user["headers"])
    assert r.status_code == 400
    assert r.json() == {"message": "Customer name, email, and phone are required"}

    r = client.post("/api/orders", json={"reel_id": reel["id"], "quantity": 1}, headers=user["headers"])
    assert r.json() == {"message": "Missing required fields"}


def test_order_on_unknown_reel(client, user, customer):
    r = client.post("/api/orders", json={"reel_id": str(ObjectId()), "quantity": 1,
                                         "customer_info": customer, "total_amount": 5},
                    headers=user["headers"])
    assert r.status_code == 404


def test_partners_cannot_place_orders(partner, reel, place_order):
    assert place_order(partner, reel).status_code == 403


def test_user_orders_newest_first(client, user, make_reel, partner, place_order):
    first, second = make_reel(partner, price=3), make_reel(partner, price=4)
    o1 = place_order(user, first).json()["order"]
    o2 = place_order(user, second).json()["order"]
    listed = client.get("/api/orders", headers=user["headers"]).json()
    assert [o["id"] for o in listed] == [o2["id"], o1["id"]]


def test_partner_orders_only_cover_own_reels(client, make_user, make_partner, make_reel, place_order):
    p1, p2 = make_partner("One"), make_partner("Two")
    buyer = make_user("buyer")
    mine = place_order(buyer, make_reel(p1)).json()["order"]
    place_order(buyer, make_reel(p2))

    listed = client.get("/api/orders/partner", headers=p1["headers"]).json()
    assert [o["id"] for o in listed] == [mine["id"]]
    assert listed[0]["buyer"] == {"id": buyer["id"], "username": "buyer", "email": "buyer@example.com"}


@pytest.mark.parametrize("status", ORDER_STATUSES)
def test_non_owner_cannot_update_status(client, make_partner, user, reel, place_order, status):
    order = place_order(user, reel).json()["order"]
    stranger = make_partner("Stranger")
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": status}, headers=stranger["headers"])
    assert r.status_code == 403
    assert r.json() == {"message": "Not authorized"}


def test_owner_walks_order_forward(client, partner, user, reel, place_order):
    order = place_order(user, reel).json()["order"]
    url = f"/api/orders/{order['id']}/status"
    for status in ("confirmed", "shipped", "delivered", "completed"):
        r = client.patch(url, json={"status": status}, headers=partner["headers"])
        assert r.status_code == 200, r.text
        assert r.json()["order"]["status"] == status

    r = client.patch(url, json={"status": "cancelled"}, headers=partner["headers"])
    assert r.status_code == 400
    assert r.json() == {"message": "Cannot change order status from completed to cancelled"}


def test_status_update_errors(client, partner, user, reel, place_order):
    order = place_order(user, reel).json()["order"]
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "teleported"}, headers=partner["headers"])
    assert r.status_code == 400
    r = client.patch(f"/api/orders/{ObjectId()}/status", json={"status": "shipped"}, headers=partner["headers"])
    assert r.status_code == 404
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "shipped"}, headers=user["headers"])
    assert r.status_code == 403


def test_unknown_status_is_checked_after_lookup_and_ownership(client, make_partner, partner, user, reel, place_order):
    order = place_order(user, reel).json()["order"]
    stranger = make_partner("Stranger")

    r = client.patch(f"/api/orders/{ObjectId()}/status", json={"status": "bogus"}, headers=partner["headers"])
    assert r.status_code == 404
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "bogus"}, headers=stranger["headers"])
    assert r.status_code == 403
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "bogus"}, headers=partner["headers"])
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid status"}


@pytest.mark.parametrize("current,new,allowed", [
    ("pending", "confirmed", True),
    ("pending", "processing", True),
    ("pending", "shipped", True),
    ("pending", "cancelled", True),
    ("pending", "completed", False),
    ("confirmed", "processing", True),
    ("confirmed", "cancelled", True),
    ("processing", "shipped", True),
    ("processing", "confirmed", False),
    ("shipped", "delivered", True),
    ("shipped", "cancelled", False),
    ("shipped", "completed", False),
    ("delivered", "completed", True),
    ("delivered", "cancelled", False),
    ("cancelled", "pending", False),
    ("completed", "delivered", False),
    ("pending", "pending", False),
])
def test_transition_policy(current, new, allowed):
    assert orders.can_transition(current, new) is allowed


def test_deleted_reel_keeps_buyer_order(client, partner, user, reel, place_order):
    order = place_order(user, reel).json()["order"]
    client.delete(f"/api/reels/{reel['id']}", headers=partner["headers"])

    mine = client.get("/api/orders", headers=user["headers"]).json()
    assert mine[0]["id"] == order["id"]
    assert mine[0]["reel"] is None
    assert mine[0]["reel_available"] is False

    assert client.get("/api/orders/partner", headers=partner["headers"]).json() == []
    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "shipped"}, headers=partner["headers"])
    assert r.status_code == 403
