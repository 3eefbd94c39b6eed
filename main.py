import os
import re
import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import FastAPI, HTTPException, Body, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from pymongo import ReturnDocument

from database import (
    Collections,
    MongoConnection,
    DEFAULT_DB_NAME,
    is_valid_id,
    to_dict,
    to_list,
    insert_result,
    update_result,
    delete_result,
)
from schemas import (
    Listing as ListingSchema,
    User as UserSchema,
    UserProfile,
    ROLES,
    ACCOUNT_STATUSES,
    ORDER_STATUSES,
    DEFAULT_ROLE,
    DEFAULT_ACCOUNT_STATUS,
    DEFAULT_ORDER_STATUS,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pawmart.api")

DB_URI = os.getenv("DB_URI")
DB_NAME = os.getenv("DB_NAME", DEFAULT_DB_NAME)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:5174,https://paw-mart-client-beta.vercel.app",
    ).split(",")
    if o.strip()
]
ADMIN_SETUP_SECRET = os.getenv("ADMIN_SETUP_SECRET", "pawmart-admin-setup-2024")

DEMO_EMAIL = "demo@pawmart.com"
DEMO_PASSWORD = "Demo@1234"
DEMO_NAME = "Demo User"

LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.mongo.close()


app = FastAPI(title="PawMart API", version="1.0.0", lifespan=lifespan)
app.state.mongo = MongoConnection(DB_URI, DB_NAME)


@app.middleware("http")
async def run_safe(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception("Error in %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "message": str(e)},
        )


# registered last so it runs outside run_safe
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def get_collections(request: Request) -> Collections:
    return await request.app.state.mongo.ensure_connected()


# Utils
def object_id(value: str) -> ObjectId:
    if not is_valid_id(value):
        raise HTTPException(status_code=400, detail="Invalid ID format")
    return ObjectId(value)


def parse_limit(raw: Optional[str]) -> int:
    # leading integer as the web client sends it ("10abc" -> 10); anything else means no limit
    m = LEADING_INT.match(raw or "")
    return max(int(m.group(1)), 0) if m else 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def email_filter(email: Optional[str]) -> dict:
    return {"email": email} if email else {}


@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "PawMart Server is running"


@app.get("/test")
async def test_database(request: Request):
    mongo: MongoConnection = request.app.state.mongo
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if mongo.uri else "❌ Not Set",
        "database_name": mongo.db_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        collections = await mongo.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
        response["connection_status"] = mongo.state.value
    return response


# Listings Endpoints

@app.get("/listings")
async def list_listings(
    category: Optional[str] = None,
    limit: Optional[str] = None,
    db: Collections = Depends(get_collections),
):
    query = {"category": category} if category else {}
    cursor = db.listings.find(query).sort("_id", -1)
    n = parse_limit(limit)
    if n:
        cursor = cursor.limit(n)
    return to_list(await cursor.to_list(None))


@app.get("/listings/{listing_id}")
async def get_listing(listing_id: str, db: Collections = Depends(get_collections)):
    oid = object_id(listing_id)
    return to_dict(await db.listings.find_one({"_id": oid}))


@app.post("/listings")
async def create_listing(
    listing: Dict[str, Any] = Body(...),
    db: Collections = Depends(get_collections),
):
    res = await db.listings.insert_one(listing)
    return insert_result(res)


@app.get("/my-listings")
async def my_listings(email: Optional[str] = None, db: Collections = Depends(get_collections)):
    docs = await db.listings.find(email_filter(email)).to_list(None)
    return to_list(docs)


@app.put("/listings/{listing_id}")
async def update_listing(
    listing_id: str,
    body: ListingSchema,
    db: Collections = Depends(get_collections),
):
    oid = object_id(listing_id)
    # whole field set is written, absent fields become null
    res = await db.listings.update_one({"_id": oid}, {"$set": body.model_dump()}, upsert=True)
    return update_result(res)


@app.delete("/listings/{listing_id}")
async def delete_listing(listing_id: str, db: Collections = Depends(get_collections)):
    oid = object_id(listing_id)
    res = await db.listings.delete_one({"_id": oid})
    return delete_result(res)


# Orders Endpoints

class OrderStatusBody(BaseModel):
    status: Optional[str] = None


@app.post("/orders")
async def create_order(
    order: Dict[str, Any] = Body(...),
    db: Collections = Depends(get_collections),
):
    order["status"] = DEFAULT_ORDER_STATUS
    order["createdAt"] = utcnow()
    res = await db.orders.insert_one(order)
    return insert_result(res)


@app.get("/orders")
async def list_orders(db: Collections = Depends(get_collections)):
    docs = await db.orders.find({}).sort("_id", -1).to_list(None)
    return to_list(docs)


@app.get("/my-orders")
async def my_orders(email: Optional[str] = None, db: Collections = Depends(get_collections)):
    docs = await db.orders.find(email_filter(email)).sort("_id", -1).to_list(None)
    return to_list(docs)


@app.patch("/orders/{order_id}")
async def update_order_status(
    order_id: str,
    body: OrderStatusBody,
    db: Collections = Depends(get_collections),
):
    oid = object_id(order_id)
    if body.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Allowed: {', '.join(ORDER_STATUSES)}")
    res = await db.orders.update_one({"_id": oid}, {"$set": {"status": body.status}})
    return update_result(res)


@app.delete("/orders/{order_id}")
async def delete_order(order_id: str, db: Collections = Depends(get_collections)):
    oid = object_id(order_id)
    res = await db.orders.delete_one({"_id": oid})
    return delete_result(res)


# Users Endpoints

class RoleBody(BaseModel):
    role: Optional[str] = None


class StatusBody(BaseModel):
    status: Optional[str] = None


class AdminSetupBody(BaseModel):
    email: Optional[str] = None
    secretKey: Optional[str] = None


@app.get("/users")
async def list_users(db: Collections = Depends(get_collections)):
    return to_list(await db.users.find({}).to_list(None))


@app.get("/users/email/{email}")
async def get_user_by_email(email: str, db: Collections = Depends(get_collections)):
    user = await db.users.find_one({"email": email})
    # callers treat "no user yet" as a plain user
    return to_dict(user) if user else {"role": DEFAULT_ROLE}


@app.get("/users/admin/{email}")
async def check_admin(email: str, db: Collections = Depends(get_collections)):
    user = await db.users.find_one({"email": email})
    return {"admin": bool(user) and user.get("role") == "admin"}


@app.get("/users/seller/{email}")
async def check_seller(email: str, db: Collections = Depends(get_collections)):
    user = await db.users.find_one({"email": email})
    return {"seller": bool(user) and user.get("role") in ("seller", "admin")}


@app.get("/users/{user_id}")
async def get_user(user_id: str, db: Collections = Depends(get_collections)):
    oid = object_id(user_id)
    return to_dict(await db.users.find_one({"_id": oid}))


@app.post("/users")
async def login_user(
    user: Dict[str, Any] = Body(...),
    db: Collections = Depends(get_collections),
):
    email = user.get("email")
    if not isinstance(email, str) or not email:
        raise HTTPException(status_code=400, detail="Email is required")

    now = utcnow()
    existing = await db.users.find_one_and_update(
        {"email": email},
        {"$set": {"lastLogin": now}},
        return_document=ReturnDocument.AFTER,
    )
    if existing:
        return to_dict(existing)

    doc = {
        **user,
        "role": DEFAULT_ROLE,
        "status": DEFAULT_ACCOUNT_STATUS,
        "createdAt": now,
        "lastLogin": now,
    }
    res = await db.users.insert_one(doc)
    return insert_result(res)


@app.patch("/users/role/{user_id}")
async def update_user_role(
    user_id: str,
    body: RoleBody,
    db: Collections = Depends(get_collections),
):
    oid = object_id(user_id)
    if body.role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Allowed: {', '.join(ROLES)}")
    res = await db.users.update_one({"_id": oid}, {"$set": {"role": body.role}})
    return update_result(res)


@app.patch("/users/status/{user_id}")
async def update_user_status(
    user_id: str,
    body: StatusBody,
    db: Collections = Depends(get_collections),
):
    oid = object_id(user_id)
    if body.status not in ACCOUNT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Allowed: {', '.join(ACCOUNT_STATUSES)}")
    res = await db.users.update_one({"_id": oid}, {"$set": {"status": body.status}})
    return update_result(res)


@app.patch("/users/{user_id}")
async def update_user_profile(
    user_id: str,
    body: UserProfile,
    db: Collections = Depends(get_collections),
):
    oid = object_id(user_id)
    res = await db.users.update_one({"_id": oid}, {"$set": body.model_dump()})
    return update_result(res)


@app.delete("/users/{user_id}")
async def delete_user(user_id: str, db: Collections = Depends(get_collections)):
    oid = object_id(user_id)
    res = await db.users.delete_one({"_id": oid})
    return delete_result(res)


# Admin

@app.get("/admin/stats")
async def admin_stats(db: Collections = Depends(get_collections)):
    # independent counts, no snapshot across them
    stats = {
        "totalUsers": await db.users.count_documents({}),
        "totalListings": await db.listings.count_documents({}),
        "totalOrders": await db.orders.count_documents({}),
        "usersByRole": {},
    }
    for role in ROLES:
        stats["usersByRole"][role] = await db.users.count_documents({"role": role})
    return stats


@app.post("/admin/setup")
async def setup_admin(body: AdminSetupBody, db: Collections = Depends(get_collections)):
    if not body.secretKey or not hmac.compare_digest(body.secretKey.encode(), ADMIN_SETUP_SECRET.encode()):
        raise HTTPException(status_code=403, detail="Invalid secret key")
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    res = await db.users.update_one({"email": body.email}, {"$set": {"role": "admin"}})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found. Log in once before running setup.")

    logger.info("Promoted %s to admin", body.email)
    return {"success": True, "message": f"{body.email} is now an admin", "result": update_result(res)}


@app.post("/seed/demo-user")
async def seed_demo_user(db: Collections = Depends(get_collections)):
    now = utcnow()
    demo = UserSchema(email=DEMO_EMAIL, name=DEMO_NAME, lastLogin=now)
    fields = demo.model_dump(exclude={"email"}, exclude_none=True)
    res = await db.users.update_one(
        {"email": DEMO_EMAIL},
        {"$set": fields, "$setOnInsert": {"createdAt": now}},
        upsert=True,
    )
    logger.info("Demo account %s seeded", DEMO_EMAIL)
    return {
        "success": True,
        "email": DEMO_EMAIL,
        "password": DEMO_PASSWORD,
        "result": update_result(res),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port)
