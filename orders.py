"""
Order ledger

Orders are placed by end users against a reel and fulfilled by the partner
who owns that reel. The buyer's contact details are copied onto the order;
the reel is referenced by id only and may be deleted later, in which case
the order is still returned to its buyer with `reel: None`.

Status moves forward along

    pending -> confirmed -> processing -> shipped -> delivered -> completed

(steps may be skipped, `completed` only follows `delivered`), and
`cancelled` is reachable until the order ships. `completed` and `cancelled`
are final.
"""

import logging
import math
from typing import List, Optional

from pymongo import DESCENDING, ReturnDocument

import database
import reels
from database import create_document, to_object_id
from errors import ForbiddenError, NotFoundError, ValidationError
from schemas import ORDER_STATUSES, CustomerInfo, Order

logger = logging.getLogger(__name__)

ORDER_SORT = [("created_at", DESCENDING), ("_id", DESCENDING)]

STATUS_FLOW = ("pending", "confirmed", "processing", "shipped", "delivered", "completed")
CANCELLABLE = {"pending", "confirmed", "processing"}
FINAL = {"completed", "cancelled"}

TOTAL_TOLERANCE = 0.01
_EPSILON = 1e-9


def _orders():
    return database.get_db()["order"]


def can_transition(current: str, new: str) -> bool:
    if current in FINAL or current == new:
        return False
    if new == "cancelled":
        return current in CANCELLABLE
    if new == "completed":
        return current == "delivered"
    if current not in STATUS_FLOW or new not in STATUS_FLOW:
        return False
    return STATUS_FLOW.index(new) > STATUS_FLOW.index(current)


def totals_match(total_amount: float, price: float, quantity: int) -> bool:
    return abs(total_amount - price * quantity) - TOTAL_TOLERANCE <= _EPSILON


# ---------------
# Projection
# ---------------

def _reel_summary(reel: Optional[dict], accounts: dict) -> Optional[dict]:
    if reel is None:
        return None
    return {
        "id": str(reel["_id"]),
        "video_url": reel["video_url"],
        "caption": reel.get("caption"),
        "price": reel["price"],
        "partner": reels.partner_public(accounts.get(reel["partner_id"])),
    }


def serialize_orders(orders: List[dict], with_buyer: bool = False) -> List[dict]:
    reel_ids = [o for o in {to_object_id(order["reel_id"]) for order in orders} if o is not None]
    reel_map = {}
    if reel_ids:
        reel_map = {str(r["_id"]): r for r in database.get_db()["reel"].find({"_id": {"$in": reel_ids}})}

    account_ids = [r["partner_id"] for r in reel_map.values()]
    if with_buyer:
        account_ids += [order["user_id"] for order in orders]
    accounts = reels.load_accounts(account_ids)

    results = []
    for order in orders:
        reel = reel_map.get(order["reel_id"])
        item = {
            "id": str(order["_id"]),
            "user_id": order["user_id"],
            "reel_id": order["reel_id"],
            "reel": _reel_summary(reel, accounts),
            "reel_available": reel is not None,
            "quantity": order["quantity"],
            "customer_info": order["customer_info"],
            "notes": order.get("notes", ""),
            "total_amount": order["total_amount"],
            "status": order["status"],
            "created_at": order.get("created_at"),
            "updated_at": order.get("updated_at"),
        }
        if with_buyer:
            buyer = accounts.get(order["user_id"])
            item["buyer"] = {"id": str(buyer["_id"]), "username": buyer.get("username"), "email": buyer["email"]} if buyer else None
        results.append(item)
    return results


# ---------------
# Operations
# ---------------

def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def place_order(user_id: str, reel_id: Optional[str], quantity, customer_info: Optional[dict], notes: Optional[str], total_amount) -> dict:
    if not reel_id or quantity is None or customer_info is None or total_amount is None:
        raise ValidationError("Missing required fields")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a whole number of at least 1")

    info = {k: _clean(customer_info.get(k)) for k in ("name", "email", "phone", "address")}
    if not (info["name"] and info["email"] and info["phone"]):
        raise ValidationError("Customer name, email, and phone are required")

    try:
        total_amount = float(total_amount)
    except (TypeError, ValueError):
        raise ValidationError("Invalid total amount")
    if not math.isfinite(total_amount) or total_amount < 0:
        raise ValidationError("Invalid total amount")

    reel = reels.get_reel(reel_id)
    if not totals_match(total_amount, reel["price"], quantity):
        raise ValidationError("Invalid total amount")

    order_id = create_document("order", Order(
        user_id=user_id,
        reel_id=str(reel["_id"]),
        quantity=quantity,
        customer_info=CustomerInfo(**info),
        notes=_clean(notes) or "",
        total_amount=total_amount,
    ))
    logger.info("User %s placed order %s on reel %s", user_id, order_id, reel["_id"])
    return serialize_orders([_orders().find_one({"_id": to_object_id(order_id)})])[0]


def list_for_user(user_id: str) -> List[dict]:
    return serialize_orders(list(_orders().find({"user_id": user_id}).sort(ORDER_SORT)))


def partner_order_filter(partner_id: str) -> dict:
    """Orders on the partner's current reels; orders on deleted reels fall out."""
    reel_ids = [str(r["_id"]) for r in database.get_db()["reel"].find({"partner_id": partner_id}, {"_id": 1})]
    return {"reel_id": {"$in": reel_ids}}


def list_for_partner(partner_id: str, limit: Optional[int] = None) -> List[dict]:
    cursor = _orders().find(partner_order_filter(partner_id)).sort(ORDER_SORT)
    if limit:
        cursor = cursor.limit(limit)
    return serialize_orders(list(cursor), with_buyer=True)


def update_status(order_id, partner_id: str, new_status: Optional[str]) -> dict:
    oid = to_object_id(order_id)
    order = _orders().find_one({"_id": oid}) if oid else None
    if not order:
        raise NotFoundError("Order not found")

    reel_oid = to_object_id(order["reel_id"])
    reel = database.get_db()["reel"].find_one({"_id": reel_oid}) if reel_oid else None
    if not reel or reel["partner_id"] != partner_id:
        raise ForbiddenError("Not authorized")

    if new_status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    if not can_transition(order["status"], new_status):
        raise ValidationError(f"Cannot change order status from {order['status']} to {new_status}")

    updated = _orders().find_one_and_update(
        {"_id": order["_id"]},
        {"$set": {"status": new_status, "updated_at": database.now()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Order %s moved %s -> %s by partner %s", order_id, order["status"], new_status, partner_id)
    return serialize_orders([updated], with_buyer=True)[0]
