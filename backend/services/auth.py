import logging
from datetime import datetime

from pymongo.errors import DuplicateKeyError

from config.constants import USER_CACHE_TTL
from models.buyer import BuyerProfileIn
from models.user import UserCreate, UserLogin, Role
from utils.cache import Cache, user_key
from utils.errors import Conflict, Unauthorized, Forbidden
from utils.hash import hash_password, verify_password
from utils.jwt import create_access_token
from utils.mongo import serialize_doc, to_jsonable

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "User already exists with this email"


def identity_summary(user: dict, profile_completed: bool) -> dict:
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role"),
        "profile_completed": profile_completed,
        "is_verified": user.get("is_verified", False),
    }


async def _has_profile(db, user: dict) -> bool:
    if user.get("role") == Role.BUYER.value:
        return await db.buyers.find_one({"user_id": user["_id"]}, {"_id": 1}) is not None
    if user.get("role") == Role.SELLER.value:
        return await db.sellers.find_one({"user_id": user["_id"]}, {"_id": 1}) is not None
    return False


# ======================
# Register / Login
# ======================

async def register(db, cache: Cache, data: UserCreate) -> dict:
    if await db.users.find_one({"email": data.email}, {"_id": 1}):
        raise Conflict(DUPLICATE_EMAIL)

    now = datetime.utcnow()
    user = {
        "email": data.email,
        "password_hash": hash_password(data.password),
        "role": data.role.value,
        "profile_completed": False,
        "is_verified": False,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await db.users.insert_one(user)
    except DuplicateKeyError:
        raise Conflict(DUPLICATE_EMAIL)
    user["_id"] = result.inserted_id

    summary = identity_summary(user, False)
    await cache.set_json(user_key(user["_id"]), summary, USER_CACHE_TTL)

    logger.info("USER_REGISTERED user=%s role=%s", user["_id"], user["role"])
    return {
        "user": {**summary, "created_at": to_jsonable(now)},
        "token": create_access_token(user),
    }


async def login(db, cache: Cache, data: UserLogin) -> dict:
    user = await db.users.find_one({"email": data.email})
    if not user or not verify_password(data.password, user.get("password_hash")):
        raise Unauthorized("Invalid email or password")

    now = datetime.utcnow()
    await db.users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})

    summary = identity_summary(user, await _has_profile(db, user))
    await cache.set_json(user_key(user["_id"]), summary, USER_CACHE_TTL)

    return {
        "user": {**summary, "last_login": to_jsonable(now)},
        "token": create_access_token(user),
    }


# ======================
# Current identity
# ======================

async def me(db, cache: Cache, user: dict) -> dict:
    key = user_key(user["_id"])

    cached = await cache.get_json(key)
    if cached is not None:
        return cached

    summary = identity_summary(user, await _has_profile(db, user))
    await cache.set_json(key, summary, USER_CACHE_TTL)
    return summary


async def logout(cache: Cache, user: dict) -> None:
    await cache.delete(user_key(user["_id"]))


# ======================
# Buyer profile
# ======================

async def upsert_buyer_profile(db, cache: Cache, user: dict, data: BuyerProfileIn) -> tuple[dict, bool]:
    if user.get("role") != Role.BUYER.value:
        raise Forbidden("Only buyers can create buyer profiles")

    now = datetime.utcnow()
    payload = data.model_dump()
    location = payload.pop("location")
    payload["location"] = {
        "type": "Point",
        "coordinates": location["coordinates"],
        "address": location["address"],
    }
    payload["updated_at"] = now

    result = await db.buyers.update_one(
        {"user_id": user["_id"]},
        {"$set": payload, "$setOnInsert": {"user_id": user["_id"], "created_at": now}},
        upsert=True,
    )
    created = result.upserted_id is not None

    await db.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"profile_completed": True, "updated_at": now}},
    )
    await cache.delete(user_key(user["_id"]))

    buyer = await db.buyers.find_one({"user_id": user["_id"]})
    return serialize_doc(buyer), created
