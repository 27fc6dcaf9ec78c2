"""
Database Schemas

MongoDB collection schemas as Pydantic models. These validate documents
before they are inserted through create_document().

Each model represents a collection; the collection name is the lowercase
of the class name:
- Account -> "account" (end users and partners, told apart by `kind`)
- Reel -> "reel"
- Order -> "order"

Ids of other documents are stored as strings of their ObjectId.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

import config

AccountKind = Literal["user", "partner"]

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "completed")
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "completed"]


class Account(BaseModel):
    """
    Accounts collection schema
    Collection name: "account"

    One collection for both account kinds. `username` is set for end users;
    name/brand_name/description/profile_pic/reels for partners.
    """
    kind: AccountKind = Field(..., description="user | partner")
    email: str = Field(..., description="Lowercased email, unique per kind")
    password_hash: str = Field(..., description="BCrypt password hash")
    username: Optional[str] = Field(None, description="End-user handle")
    name: Optional[str] = Field(None, description="Partner display name")
    brand_name: Optional[str] = Field(None, description="Partner brand")
    description: Optional[str] = Field(None, max_length=300, description="Partner bio")
    profile_pic: Optional[str] = Field(None, description="Partner profile image URL")
    reels: List[str] = Field(default_factory=list, description="Owned reel ids (derived from reel.partner_id)")


def new_partner_defaults() -> dict:
    return {"profile_pic": config.DEFAULT_PROFILE_PIC, "reels": []}


class Comment(BaseModel):
    id: str = Field(..., description="Comment id")
    user_id: str = Field(..., description="Author account id")
    text: str = Field(..., min_length=1)
    created_at: datetime


class Reel(BaseModel):
    """
    Reels collection schema
    Collection name: "reel"
    """
    partner_id: str = Field(..., description="Owning partner account id, immutable")
    video_url: str = Field(..., description="Hosted video URL returned by media storage")
    caption: Optional[str] = Field(None)
    price: float = Field(..., gt=0, description="Unit price")
    likes: List[str] = Field(default_factory=list, description="Account ids that liked the reel")
    saves: List[str] = Field(default_factory=list, description="Account ids that saved the reel")
    comments: List[Comment] = Field(default_factory=list)


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: str
    address: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str = Field(..., description="Buyer account id")
    reel_id: str = Field(..., description="Purchased reel id (may outlive the reel)")
    quantity: int = Field(1, ge=1)
    customer_info: CustomerInfo = Field(..., description="Snapshot taken at order time")
    notes: str = Field("")
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = Field("pending")
