"""
Python client for the reels API.

SessionContext holds the signed-in account explicitly: hydrate it once at
start-up, it is cleared on logout and on any 401 from the server.

ReelsClient applies like/save toggles optimistically. The predicted state
sits in a pending overlay while the request is in flight and is always
dropped once the server answers: replaced by the server's reel on success,
discarded on failure.
"""

import json
import logging
import os
from typing import Dict, Optional, Tuple

import requests

from errors import error_for_status

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.token: Optional[str] = None
        self.account: Optional[dict] = None
        self.kind: Optional[str] = None
        self._hydrated = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def hydrate(self) -> "SessionContext":
        """Load a persisted session, once."""
        if self._hydrated:
            return self
        self._hydrated = True
        if self.path and os.path.exists(self.path):
            try:
                with open(self.path) as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
                data = {}
            self.token = data.get("token")
            self.account = data.get("account")
            self.kind = data.get("kind")
        return self

    def save(self, token: str, account: dict, kind: str):
        self.token, self.account, self.kind = token, account, kind
        if self.path:
            with open(self.path, "w") as f:
                json.dump({"token": token, "account": account, "kind": kind}, f)

    def clear(self):
        self.token = self.account = self.kind = None
        if self.path and os.path.exists(self.path):
            os.remove(self.path)


TOGGLE_FIELDS = {
    "like": ("is_liked", "likes_count"),
    "save": ("is_saved", "saves_count"),
}


class ReelsClient:
    def __init__(self, base_url: str = "", session=None, context: Optional[SessionContext] = None):
        self.base_url = base_url.rstrip("/")
        self.http = session if session is not None else requests.Session()
        self.context = (context or SessionContext()).hydrate()
        self._reels: Dict[str, dict] = {}
        self._pending: Dict[Tuple[str, str], dict] = {}

    def _request(self, method: str, path: str, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        if self.context.token:
            headers["Authorization"] = f"Bearer {self.context.token}"
        resp = getattr(self.http, method)(self.base_url + path, headers=headers, **kwargs)
        if resp.status_code == 401:
            self.context.clear()
        if resp.status_code >= 400:
            try:
                message = resp.json().get("message")
            except ValueError:
                message = resp.text
            raise error_for_status(resp.status_code, message)
        return resp.json()

    # Session

    def _start_session(self, kind: str, data: dict) -> dict:
        self.context.save(data["token"], data[kind], kind)
        return data[kind]

    def register_user(self, username: str, email: str, password: str) -> dict:
        data = self._request("post", "/api/auth/user/register", json={"username": username, "email": email, "password": password})
        return self._start_session("user", data)

    def register_partner(self, name: str, email: str, password: str, brand_name: str, description: Optional[str] = None) -> dict:
        data = self._request("post", "/api/auth/partner/register", json={
            "name": name, "email": email, "password": password,
            "brand_name": brand_name, "description": description,
        })
        return self._start_session("partner", data)

    def login(self, kind: str, email: str, password: str) -> dict:
        data = self._request("post", f"/api/auth/{kind}/login", json={"email": email, "password": password})
        return self._start_session(kind, data)

    def logout(self):
        kind = self.context.kind or "user"
        try:
            self._request("get", f"/api/auth/{kind}/logout")
        finally:
            self.context.clear()
            self._reels.clear()
            self._pending.clear()

    # Reels

    def feed(self, page: int = 1, limit: int = 10) -> dict:
        data = self._request("get", "/api/reels", params={"page": page, "limit": limit})
        for reel in data["reels"]:
            self._reels[reel["id"]] = reel
        return data

    def upload_reel(self, video: str, price: float, caption: Optional[str] = None) -> dict:
        return self._request("post", "/api/reels/upload", json={"video": video, "price": price, "caption": caption})["reel"]

    def comment(self, reel_id: str, text: str) -> dict:
        reel = self._request("post", f"/api/reels/{reel_id}/comment", json={"text": text})["reel"]
        self._reels[reel_id] = reel
        return reel

    def view(self, reel: dict) -> dict:
        """The reel as the UI should show it: last known state plus pending toggles."""
        merged = dict(self._reels.get(reel["id"], reel))
        for (reel_id, _), overlay in self._pending.items():
            if reel_id == reel["id"]:
                merged.update(overlay)
        return merged

    def pending(self, reel_id: str) -> Dict[str, dict]:
        return {field: overlay for (rid, field), overlay in self._pending.items() if rid == reel_id}

    def _toggle(self, reel: dict, field: str) -> dict:
        flag, count = TOGGLE_FIELDS[field]
        current = self.view(reel)
        was_on = bool(current.get(flag))
        key = (reel["id"], field)
        self._pending[key] = {flag: not was_on, count: max(0, current.get(count, 0) + (-1 if was_on else 1))}
        try:
            server = self._request("post", f"/api/reels/{reel['id']}/{field}")["reel"]
        finally:
            predicted = self._pending.pop(key)
        if server.get(flag) != predicted[flag]:
            logger.info("Server state for reel %s differs from the optimistic %s", reel["id"], field)
        self._reels[reel["id"]] = server
        return server

    def toggle_like(self, reel: dict) -> dict:
        return self._toggle(reel, "like")

    def toggle_save(self, reel: dict) -> dict:
        return self._toggle(reel, "save")

    # Orders

    def place_order(self, reel_id: str, quantity: int, customer_info: dict, total_amount: float, notes: Optional[str] = None) -> dict:
        return self._request("post", "/api/orders", json={
            "reel_id": reel_id,
            "quantity": quantity,
            "customer_info": customer_info,
            "notes": notes,
            "total_amount": total_amount,
        })["order"]

    def my_orders(self) -> list:
        return self._request("get", "/api/orders")

    def partner_orders(self) -> list:
        return self._request("get", "/api/orders/partner")

    def update_order_status(self, order_id: str, status: str) -> dict:
        return self._request("patch", f"/api/orders/{order_id}/status", json={"status": status})["order"]

    # Profiles

    def profile(self) -> dict:
        path = "/api/partner/profile" if self.context.kind == "partner" else "/api/user/profile"
        return self._request("get", path)

    def analytics(self) -> dict:
        return self._request("get", "/api/partner/analytics")
