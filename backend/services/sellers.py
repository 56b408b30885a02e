import asyncio
import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import UploadFile
from pymongo.errors import DuplicateKeyError

from config.constants import (
    SELLER_PROFILE_TTL,
    DASHBOARD_RECENT_PRODUCTS,
    MAX_SELLER_DOCUMENTS,
    MAX_SELLER_CERTIFICATIONS,
    DOCUMENT_CONTENT_TYPES,
    CERTIFICATION_CONTENT_TYPES,
)
from models.seller import SellerProfileIn, DocumentStatus, VerificationStatus, SellerDocumentType
from utils.cache import Cache, user_key, seller_profile_key
from utils.errors import NotFound
from utils.guards import get_seller_for_user
from utils.mongo import serialize_doc
from utils.storage import CloudStorage, check_uploads

logger = logging.getLogger(__name__)

QUICK_ACTIONS = [
    {"name": "Add New Product", "action": "add_product"},
    {"name": "Update Profile", "action": "update_profile"},
    {"name": "View Analytics", "action": "view_analytics"},
]


def _document_refs(stored, uploaded_at) -> list:
    return [
        {
            "type": SellerDocumentType.COMPANY_REGISTRATION.value,
            "file_name": original_name,
            "file_url": url,
            "uploaded_at": uploaded_at,
            "verification_status": DocumentStatus.PENDING.value,
        }
        for original_name, url in stored
    ]


def _certification_refs(stored, uploaded_at) -> list:
    return [
        {
            "name": os.path.splitext(original_name)[0],
            "certificate_url": url,
            "uploaded_at": uploaded_at,
            "verification_status": DocumentStatus.PENDING.value,
        }
        for original_name, url in stored
    ]


def _set_paths(values: dict, prefix: str = "") -> dict:
    """Nested dicts become dotted paths so a merge only touches sent fields."""
    paths = {}
    for name, value in values.items():
        path = f"{prefix}{name}"
        if isinstance(value, dict) and value:
            paths.update(_set_paths(value, f"{path}."))
        else:
            paths[path] = value
    return paths


async def _merge_profile(db, user_id, fields: dict, documents: list, certifications: list):
    """
    Scalars are overwritten, document/certification lists only grow.
    Single-document update, so concurrent submissions both land.
    """
    update = {"$set": fields}
    push = {}
    if documents:
        push["documents"] = {"$each": documents}
    if certifications:
        push["certifications"] = {"$each": certifications}
    if push:
        update["$push"] = push

    await db.sellers.update_one({"user_id": user_id}, update)
    return await db.sellers.find_one({"user_id": user_id})


# ======================================================
# PROFILE UPSERT
# ======================================================

async def upsert_seller_profile(
    db,
    cache: Cache,
    storage: CloudStorage,
    user: dict,
    data: SellerProfileIn,
    documents: Optional[List[UploadFile]] = None,
    certifications: Optional[List[UploadFile]] = None,
) -> tuple[dict, bool]:
    """Returns (profile, created)."""
    documents = check_uploads(documents, field="documents", allowed_types=DOCUMENT_CONTENT_TYPES,
                              max_count=MAX_SELLER_DOCUMENTS)
    certifications = check_uploads(certifications, field="certifications",
                                   allowed_types=CERTIFICATION_CONTENT_TYPES,
                                   max_count=MAX_SELLER_CERTIFICATIONS)

    now = datetime.utcnow()
    document_refs = _document_refs(await storage.save_many(documents, "documents"), now)
    certification_refs = _certification_refs(await storage.save_many(certifications, "certifications"), now)

    changes = _set_paths(data.model_dump(exclude_unset=True))
    changes["updated_at"] = now

    created = False
    existing = await get_seller_for_user(db, user["_id"])

    if existing:
        seller = await _merge_profile(db, user["_id"], changes, document_refs, certification_refs)
    else:
        seller = {
            "user_id": user["_id"],
            **data.model_dump(),
            "updated_at": now,
            "documents": document_refs,
            "certifications": certification_refs,
            "verification_status": VerificationStatus.PENDING.value,
            "badges": [],
            "created_at": now,
        }
        try:
            result = await db.sellers.insert_one(seller)
            seller["_id"] = result.inserted_id
            created = True
        except DuplicateKeyError:
            # A concurrent first submission won; fold ours into it
            seller = await _merge_profile(db, user["_id"], changes, document_refs, certification_refs)

    await db.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"profile_completed": True, "updated_at": now}},
    )

    await cache.delete(user_key(user["_id"]), seller_profile_key(user["_id"]))

    logger.info("SELLER_PROFILE_%s user=%s", "CREATED" if created else "UPDATED", user["_id"])
    return serialize_doc(seller), created


# ======================================================
# PROFILE READ
# ======================================================

async def get_seller_profile(db, cache: Cache, user: dict) -> dict:
    key = seller_profile_key(user["_id"])

    cached = await cache.get_json(key)
    if cached is not None:
        return cached

    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound("Seller profile not found")

    profile = serialize_doc(seller)
    profile["user"] = {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "is_verified": user.get("is_verified", False),
    }

    await cache.set_json(key, profile, SELLER_PROFILE_TTL)
    return profile


# ======================================================
# DASHBOARD
# ======================================================

async def get_dashboard(db, user: dict) -> dict:
    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound("Seller profile not found")

    seller_id = seller["_id"]
    total, active, draft = await asyncio.gather(
        db.products.count_documents({"seller_id": seller_id}),
        db.products.count_documents({"seller_id": seller_id, "status": "active"}),
        db.products.count_documents({"seller_id": seller_id, "status": "draft"}),
    )

    recent = await (
        db.products
        .find(
            {"seller_id": seller_id},
            {"product_name": 1, "status": 1, "created_at": 1, "views": 1, "inquiries": 1},
        )
        .sort([("created_at", -1), ("_id", -1)])
        .limit(DASHBOARD_RECENT_PRODUCTS)
        .to_list(length=DASHBOARD_RECENT_PRODUCTS)
    )

    return {
        "profile": {
            "company_name": seller.get("company_name"),
            "brand_name": seller.get("brand_name"),
            "verification_status": seller.get("verification_status"),
            "badges": seller.get("badges", []),
        },
        "stats": {
            "total_products": total,
            "active_products": active,
            "draft_products": draft,
            "total_views": sum(p.get("views", 0) for p in recent),
            "total_inquiries": sum(p.get("inquiries", 0) for p in recent),
        },
        "recent_products": [serialize_doc(p) for p in recent],
        "quick_actions": QUICK_ACTIONS,
    }
