"""
MongoDB access

`db` is the shared database handle (None when DATABASE_URL is not set).
Collections are named after the lowercase schema class: account, reel, order.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import config
from errors import InternalError

logger = logging.getLogger(__name__)

client = None
db = None


if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]


def get_db():
    if db is None:
        raise InternalError("Database not available")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string; returns None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict["created_at"] = stamp
    data_dict["updated_at"] = stamp
    result = get_db()[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def ensure_indexes():
    database = get_db()
    database["account"].create_index([("email", ASCENDING), ("kind", ASCENDING)], unique=True)
    database["reel"].create_index([("created_at", DESCENDING)])
    database["reel"].create_index([("partner_id", ASCENDING)])
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index([("reel_id", ASCENDING)])
    logger.info("Database indexes ensured")
