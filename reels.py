"""
Reels: upload, feed, likes/saves and comments.

Reel documents only store ids. Partner and comment-author fields are
joined in when a reel is turned into a response (serialize_reels), with
one batched account lookup per response.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

import config
import database
import storage
from database import create_document, to_object_id
from errors import NotFoundError, ValidationError
from schemas import Comment, Reel

logger = logging.getLogger(__name__)

FEED_ORDER = [("created_at", DESCENDING), ("_id", DESCENDING)]


def _reels():
    return database.get_db()["reel"]


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def check_price(price) -> float:
    if price is None or isinstance(price, bool):
        raise ValidationError("Video and price are required")
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number")
    if not math.isfinite(price) or price <= 0:
        raise ValidationError("Price must be greater than 0")
    return price


def get_reel(reel_id) -> dict:
    oid = to_object_id(reel_id)
    reel = _reels().find_one({"_id": oid}) if oid else None
    if not reel:
        raise NotFoundError("Reel not found")
    return reel


def _owned_reel(reel_id, partner_id: str) -> dict:
    # a reel owned by someone else is reported exactly like a missing one
    oid = to_object_id(reel_id)
    reel = _reels().find_one({"_id": oid, "partner_id": partner_id}) if oid else None
    if not reel:
        raise NotFoundError("Reel not found or not authorized")
    return reel


# ---------------
# Projection
# ---------------

def load_accounts(ids: Iterable[str]) -> Dict[str, dict]:
    oids = [o for o in (to_object_id(i) for i in set(ids)) if o is not None]
    if not oids:
        return {}
    found = database.get_db()["account"].find({"_id": {"$in": oids}}, {"password_hash": 0})
    return {str(a["_id"]): a for a in found}


def partner_public(account: Optional[dict]) -> Optional[dict]:
    if not account:
        return None
    return {
        "id": str(account["_id"]),
        "name": account.get("name"),
        "brand_name": account.get("brand_name"),
        "profile_pic": account.get("profile_pic"),
    }


def author_public(account: Optional[dict]) -> Optional[dict]:
    if not account:
        return None
    return {"id": str(account["_id"]), "username": account.get("username"), "name": account.get("name")}


def serialize_reel(reel: dict, accounts: Dict[str, dict], viewer_id: Optional[str] = None, with_comments: bool = True) -> dict:
    likes = reel.get("likes", [])
    saves = reel.get("saves", [])
    comments = reel.get("comments", [])
    out = {
        "id": str(reel["_id"]),
        "partner": partner_public(accounts.get(reel["partner_id"])),
        "video_url": reel["video_url"],
        "caption": reel.get("caption"),
        "price": reel["price"],
        "likes_count": len(likes),
        "saves_count": len(saves),
        "comments_count": len(comments),
        "created_at": reel.get("created_at"),
        "updated_at": reel.get("updated_at"),
    }
    if with_comments:
        out["likes"] = likes
        out["saves"] = saves
        out["comments"] = [
            {
                "id": c.get("id"),
                "user": author_public(accounts.get(c["user_id"])),
                "text": c["text"],
                "created_at": c.get("created_at"),
            }
            for c in comments
        ]
    if viewer_id:
        out["is_liked"] = viewer_id in likes
        out["is_saved"] = viewer_id in saves
    return out


def serialize_reels(reels: List[dict], viewer_id: Optional[str] = None, with_comments: bool = True) -> List[dict]:
    ids = [r["partner_id"] for r in reels]
    if with_comments:
        ids += [c["user_id"] for r in reels for c in r.get("comments", [])]
    accounts = load_accounts(ids)
    return [serialize_reel(r, accounts, viewer_id, with_comments) for r in reels]


def project(reel: dict, viewer_id: Optional[str] = None) -> dict:
    return serialize_reels([reel], viewer_id)[0]


# ---------------
# Catalog operations
# ---------------

def upload(partner_id: str, video: Optional[str], caption: Optional[str], price) -> dict:
    if not video:
        raise ValidationError("Video and price are required")
    price = check_price(price)
    data = storage.decode_video(video)
    video_url = storage.upload_video(data)

    reel_id = create_document("reel", Reel(
        partner_id=partner_id,
        video_url=video_url,
        caption=_clean_text(caption) or None,
        price=price,
    ))
    database.get_db()["account"].update_one(
        {"_id": to_object_id(partner_id)},
        {"$addToSet": {"reels": reel_id}, "$set": {"updated_at": database.now()}},
    )
    logger.info("Partner %s uploaded reel %s", partner_id, reel_id)
    return project(get_reel(reel_id), partner_id)


def _page_param(value, default: int) -> int:
    """Query values that are missing, unparsable or not positive fall back to the default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def list_reels(page=None, limit=None, viewer_id: Optional[str] = None) -> dict:
    page = _page_param(page, 1)
    limit = _page_param(limit, config.DEFAULT_PAGE_SIZE)
    skip = (page - 1) * limit

    total = _reels().count_documents({})
    docs = []
    if skip < total:
        docs = list(_reels().find().sort(FEED_ORDER).skip(skip).limit(limit))
    return {
        "total_reels": total,
        "current_page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
        "reels": serialize_reels(docs, viewer_id),
    }


def list_by_partner(partner_id: str) -> List[dict]:
    docs = list(_reels().find({"partner_id": partner_id}).sort(FEED_ORDER))
    return serialize_reels(docs, partner_id)


def list_liked_by(account_id: str) -> List[dict]:
    docs = list(_reels().find({"likes": account_id}).sort(FEED_ORDER))
    return serialize_reels(docs, account_id)


def list_saved_by(account_id: str) -> List[dict]:
    docs = list(_reels().find({"saves": account_id}).sort(FEED_ORDER))
    return serialize_reels(docs, account_id)


def _toggle(field: str, reel_id, account_id: str) -> Tuple[dict, bool]:
    reel = get_reel(reel_id)
    active = account_id not in reel.get(field, [])
    op = "$addToSet" if active else "$pull"
    updated = _reels().find_one_and_update(
        {"_id": reel["_id"]},
        {op: {field: account_id}, "$set": {"updated_at": database.now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundError("Reel not found")
    return project(updated, account_id), active


def toggle_like(reel_id, account_id: str) -> Tuple[dict, bool]:
    """Like the reel if the account has not, unlike it otherwise."""
    return _toggle("likes", reel_id, account_id)


def toggle_save(reel_id, account_id: str) -> Tuple[dict, bool]:
    return _toggle("saves", reel_id, account_id)


def add_comment(reel_id, account_id: str, text: Optional[str]) -> dict:
    text = _clean_text(text)
    if not text:
        raise ValidationError("Comment text required")
    reel = get_reel(reel_id)
    stamp = database.now()
    comment = Comment(id=str(ObjectId()), user_id=account_id, text=text, created_at=stamp)
    updated = _reels().find_one_and_update(
        {"_id": reel["_id"]},
        {"$push": {"comments": comment.model_dump()}, "$set": {"updated_at": stamp}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundError("Reel not found")
    return project(updated, account_id)


def update_reel(reel_id, partner_id: str, fields: dict) -> dict:
    """Edit caption and/or price of a reel the partner owns."""
    reel = _owned_reel(reel_id, partner_id)
    changes = {}
    if fields.get("caption") is not None:
        changes["caption"] = _clean_text(fields["caption"]) or None
    if fields.get("price") is not None:
        changes["price"] = check_price(fields["price"])
    if not changes:
        return project(reel, partner_id)
    changes["updated_at"] = database.now()
    updated = _reels().find_one_and_update(
        {"_id": reel["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return project(updated, partner_id)


def delete_reel(reel_id, partner_id: str):
    reel = _owned_reel(reel_id, partner_id)
    _reels().delete_one({"_id": reel["_id"]})
    database.get_db()["account"].update_one(
        {"_id": to_object_id(partner_id)},
        {"$pull": {"reels": str(reel["_id"])}},
    )
    logger.info("Partner %s deleted reel %s", partner_id, reel["_id"])
