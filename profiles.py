"""
Profiles and partner analytics.
"""

import logging
from typing import Optional

import database
import orders
import reels
from auth import MAX_DESCRIPTION_LENGTH, public_account
from database import to_object_id
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EDITABLE_PARTNER_FIELDS = ("name", "brand_name", "description", "profile_pic")
RECENT_ORDERS = 5


def _account(account_id: str, kind: str) -> dict:
    oid = to_object_id(account_id)
    account = database.get_db()["account"].find_one({"_id": oid, "kind": kind}) if oid else None
    if not account:
        raise NotFoundError("User not found" if kind == "user" else "Partner not found")
    return account


def user_profile(user_id: str) -> dict:
    return {
        "user": public_account(_account(user_id, "user")),
        "liked_reels": reels.list_liked_by(user_id),
        "saved_reels": reels.list_saved_by(user_id),
    }


def partner_profile(partner_id: str) -> dict:
    account = _account(partner_id, "partner")
    profile = public_account(account)
    profile["reels"] = account.get("reels", [])
    profile["created_at"] = account.get("created_at")
    return profile


def update_partner_profile(partner_id: str, fields: dict) -> dict:
    _account(partner_id, "partner")
    changes = {}
    for key in EDITABLE_PARTNER_FIELDS:
        value: Optional[str] = fields.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if key in ("name", "brand_name") and not value:
            raise ValidationError("Name and brand name cannot be empty")
        if key == "description" and len(value) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        changes[key] = value
    if changes:
        changes["updated_at"] = database.now()
        database.get_db()["account"].update_one(
            {"_id": to_object_id(partner_id)},
            {"$set": changes},
        )
        logger.info("Partner %s updated profile fields %s", partner_id, sorted(k for k in changes if k != "updated_at"))
    return partner_profile(partner_id)


def partner_analytics(partner_id: str) -> dict:
    """Computed on every call; nothing is cached."""
    _account(partner_id, "partner")
    owned = list(database.get_db()["reel"].find({"partner_id": partner_id}, {"likes": 1, "saves": 1}))
    query = orders.partner_order_filter(partner_id)

    revenue = list(database.get_db()["order"].aggregate([
        {"$match": {**query, "status": "completed"}},
        {"$group": {"_id": None, "total": {"$sum": "$total_amount"}}},
    ]))
    return {
        "total_reels": len(owned),
        "total_likes": sum(len(r.get("likes", [])) for r in owned),
        "total_saves": sum(len(r.get("saves", [])) for r in owned),
        "total_orders": database.get_db()["order"].count_documents(query),
        "total_revenue": revenue[0]["total"] if revenue else 0,
        "recent_orders": orders.list_for_partner(partner_id, limit=RECENT_ORDERS),
    }
