import base64
import os
import uuid

os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import storage
from main import app

VIDEO = base64.b64encode(b"\x00\x00\x00\x18ftypmp42 not really a video").decode()


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    db = mongomock.MongoClient()[f"reels_test_{uuid.uuid4().hex}"]
    monkeypatch.setattr(database, "db", db)
    database.ensure_indexes()
    return db


@pytest.fixture(autouse=True)
def uploads(monkeypatch):
    sent = []

    def fake_send(data, file_name):
        sent.append((file_name, data))
        return f"https://ik.example.com/reels/{file_name}"

    monkeypatch.setattr(storage, "_send", fake_send)
    return sent


@pytest.fixture
def client():
    return TestClient(app)


def _session(client, path, payload, key):
    r = client.post(path, json=payload)
    assert r.status_code == 201, r.text
    data = r.json()
    # tests authenticate through the Authorization header only
    client.cookies.clear()
    return {
        "id": data[key]["id"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
        "account": data[key],
    }


@pytest.fixture
def make_user(client):
    def make(username="alice", email=None, password="secret123"):
        email = email or f"{username}@example.com"
        return _session(client, "/api/auth/user/register",
                        {"username": username, "email": email, "password": password}, "user")
    return make


@pytest.fixture
def make_partner(client):
    def make(name="Pat", email=None, password="secret123", brand_name="Pat's Goods"):
        email = email or f"{name.lower()}@example.com"
        return _session(client, "/api/auth/partner/register",
                        {"name": name, "email": email, "password": password, "brand_name": brand_name}, "partner")
    return make


@pytest.fixture
def make_reel(client):
    def make(partner, price=9.99, caption="Fresh drop"):
        r = client.post("/api/reels/upload", json={"video": VIDEO, "price": price, "caption": caption},
                        headers=partner["headers"])
        assert r.status_code == 201, r.text
        return r.json()["reel"]
    return make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def partner(make_partner):
    return make_partner()


@pytest.fixture
def reel(make_reel, partner):
    return make_reel(partner)


@pytest.fixture
def customer():
    return {"name": "Alice Smith", "email": "alice@example.com", "phone": "+1 555 0100", "address": "1 Main St"}


@pytest.fixture
def place_order(client, customer):
    def place(user, reel, quantity=1, total=None, **extra):
        total = round(reel["price"] * quantity, 2) if total is None else total
        payload = {"reel_id": reel["id"], "quantity": quantity, "customer_info": customer, "total_amount": total}
        payload.update(extra)
        return client.post("/api/orders", json=payload, headers=user["headers"])
    return place
