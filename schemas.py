"""
Database Schemas for PawMart (pet marketplace)

Each Pydantic model maps to a MongoDB collection or to the fixed field set
an endpoint is allowed to write. Field names follow the web client
(camelCase timestamps).
"""

from datetime import datetime
from typing import Any, Optional, Literal, get_args
from pydantic import BaseModel, Field

Role = Literal["user", "seller", "admin"]
AccountStatus = Literal["active", "blocked"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

ROLES = get_args(Role)
ACCOUNT_STATUSES = get_args(AccountStatus)
ORDER_STATUSES = get_args(OrderStatus)

DEFAULT_ROLE: Role = "user"
DEFAULT_ACCOUNT_STATUS: AccountStatus = "active"
DEFAULT_ORDER_STATUS: OrderStatus = "pending"


# Pets and supplies put up for sale. Only these fields are rewritten on update;
# the owner email is set once when the listing is created. Values are stored as sent.
class Listing(BaseModel):
    name: Optional[Any] = Field(None, description="Listing title")
    category: Optional[Any] = Field(None, description="Free text category (Pets, Food, ...)")
    price: Optional[Any] = None
    location: Optional[Any] = None
    description: Optional[Any] = None
    image: Optional[Any] = Field(None, description="Image URL")
    date: Optional[Any] = Field(None, description="Pick-up or listing date as sent by the client")


# Account records, keyed by email by convention
class User(BaseModel):
    email: str = Field(..., description="Email address")
    name: Optional[str] = Field(None, description="Display name")
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    photo: Optional[str] = Field(None, description="Avatar URL")
    role: Role = Field(DEFAULT_ROLE)
    status: AccountStatus = Field(DEFAULT_ACCOUNT_STATUS)
    createdAt: Optional[datetime] = None
    lastLogin: Optional[datetime] = None


# Self-service profile edit
class UserProfile(BaseModel):
    name: Optional[Any] = None
    email: Optional[Any] = None
    phone: Optional[Any] = None
    address: Optional[Any] = None
    bio: Optional[Any] = None
    photo: Optional[Any] = None
