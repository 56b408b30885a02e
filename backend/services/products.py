"""
Product orchestration: validate -> persist -> invalidate/populate cache.

Listing pages are cached under keys that embed the listing generation;
every product write bumps the generation instead of hunting down keys.
Detail pages are cached per product and dropped on update/delete.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import UploadFile
from pymongo import ReturnDocument

from config.constants import (
    PRODUCT_LIST_TTL,
    PRODUCT_DETAIL_TTL,
    FILTER_OPTIONS_TTL,
    DEFAULT_PRICE_RANGE,
    MAX_PRODUCT_IMAGES,
    MAX_PRODUCT_DOCUMENTS,
    IMAGE_CONTENT_TYPES,
    DOCUMENT_CONTENT_TYPES,
)
from models.product import ProductCreate, ProductUpdate
from utils.cache import Cache, product_key, product_list_key, filter_options_key
from utils.errors import NotFound
from utils.guards import parse_object_id, try_object_id, get_seller_for_user
from utils.mongo import serialize_doc
from utils.products import (
    build_product_card,
    build_product_detail,
    map_image_uploads,
    map_document_uploads,
)
from utils.query import (
    ProductFilters,
    build_product_query,
    build_sort,
    build_pagination,
    pagination_meta,
)
from utils.sellers import get_sellers_by_id
from utils.storage import CloudStorage, check_uploads

logger = logging.getLogger(__name__)

NOT_FOUND_OR_DENIED = "Product not found or access denied"


async def _invalidate_listings(cache: Cache, product_id=None):
    if product_id is not None:
        await cache.delete(product_key(product_id))
    await cache.bump_listing_generation()


async def _require_seller(db, user: dict) -> dict:
    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound("Seller profile not found. Please complete your profile first.")
    return seller


# =========================
# CREATE
# =========================

async def create_product(
    db,
    cache: Cache,
    storage: CloudStorage,
    user: dict,
    data: ProductCreate,
    images: Optional[List[UploadFile]] = None,
    documents: Optional[List[UploadFile]] = None,
) -> dict:
    images = check_uploads(images, field="images", allowed_types=IMAGE_CONTENT_TYPES,
                           max_count=MAX_PRODUCT_IMAGES)
    documents = check_uploads(documents, field="documents", allowed_types=DOCUMENT_CONTENT_TYPES,
                              max_count=MAX_PRODUCT_DOCUMENTS)

    seller = await _require_seller(db, user)

    now = datetime.utcnow()
    image_urls = [url for _, url in await storage.save_many(images, "images")]
    stored_documents = await storage.save_many(documents, "documents")

    product_doc = data.model_dump()
    product_doc.update({
        "seller_id": seller["_id"],
        "images": map_image_uploads(image_urls, data.product_name),
        "documents": map_document_uploads(stored_documents, now),
        "views": 0,
        "inquiries": 0,
        "created_at": now,
        "updated_at": now,
    })

    result = await db.products.insert_one(product_doc)
    product_doc["_id"] = result.inserted_id

    await _invalidate_listings(cache)

    logger.info("PRODUCT_CREATED product=%s seller=%s", result.inserted_id, seller["_id"])
    return serialize_doc(product_doc)


# =========================
# LIST (PUBLIC)
# =========================

async def _resolve_seller_filter(db, seller: Optional[str]):
    """Seller filter only applies when the seller profile exists."""
    if not seller:
        return None
    seller_id = try_object_id(seller)
    if seller_id is None:
        return None
    doc = await db.sellers.find_one({"_id": seller_id}, {"_id": 1})
    return doc["_id"] if doc else None


async def _query_products(db, query: dict, sort, skip: int, limit: int):
    cursor = db.products.find(query).sort(sort).skip(skip).limit(limit)
    return await asyncio.gather(
        cursor.to_list(length=limit),
        db.products.count_documents(query),
    )


async def list_products(db, cache: Cache, filters: ProductFilters) -> tuple[dict, bool]:
    """
    Returns (payload, cached).
    The key covers every parameter, defaults included, so equal queries
    share an entry regardless of how the client spelled them.
    """
    sort = build_sort(filters.sort_by, filters.sort_order)

    # Unknown generation: serve from the store without touching the cache
    generation = await cache.listing_generation()
    key = None
    if generation is not None:
        key = product_list_key(generation, filters.model_dump(exclude={"status"}))
        cached = await cache.get_json(key)
        if cached is not None:
            return cached, True

    seller_id = await _resolve_seller_filter(db, filters.seller)
    query = build_product_query(filters, seller_id=seller_id, public=True)
    skip, limit = build_pagination(filters.page, filters.limit)

    products, total = await _query_products(db, query, sort, skip, limit)
    sellers = await get_sellers_by_id(db, [p.get("seller_id") for p in products])

    result = {
        "products": [build_product_card(p, sellers.get(p.get("seller_id"))) for p in products],
        "pagination": pagination_meta(filters.page, limit, total, len(products)),
    }

    if key is not None:
        await cache.set_json(key, result, PRODUCT_LIST_TTL)
    return result, False


# =========================
# DETAIL (PUBLIC)
# =========================

async def get_product(db, cache: Cache, product_id: str) -> tuple[dict, bool]:
    """
    Every call adds exactly one view in the store.
    A cache hit returns the body as it was cached, so its view count
    lags the stored one.
    """
    oid = parse_object_id(product_id, "product ID")
    key = product_key(oid)

    cached = await cache.get_json(key)
    if cached is not None:
        result = await db.products.update_one({"_id": oid}, {"$inc": {"views": 1}})
        if result.matched_count:
            return cached, True
        # Entry outlived the product
        await cache.delete(key)
        raise NotFound("Product not found")

    product = await db.products.find_one({"_id": oid})
    if not product:
        raise NotFound("Product not found")

    seller = await db.sellers.find_one({"_id": product.get("seller_id")})
    detail = build_product_detail(product, seller)

    await db.products.update_one({"_id": oid}, {"$inc": {"views": 1}})
    await cache.set_json(key, detail, PRODUCT_DETAIL_TTL)

    return detail, False


# =========================
# SELLER-OWNED LISTING
# =========================

async def list_seller_products(db, user: dict, filters: ProductFilters) -> dict:
    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound("Seller profile not found")

    query = build_product_query(filters, seller_id=seller["_id"], public=False)
    sort = build_sort(filters.sort_by, filters.sort_order)
    skip, limit = build_pagination(filters.page, filters.limit)

    products, total = await _query_products(db, query, sort, skip, limit)

    return {
        "products": [serialize_doc(p) for p in products],
        "pagination": pagination_meta(filters.page, limit, total, len(products), total_key="total"),
    }


# =========================
# UPDATE / DELETE (OWNER)
# =========================

async def update_product(db, cache: Cache, user: dict, product_id: str, data: ProductUpdate) -> dict:
    oid = parse_object_id(product_id, "product ID")

    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound(NOT_FOUND_OR_DENIED)

    changes = data.model_dump(exclude_unset=True)
    changes["updated_at"] = datetime.utcnow()

    # Ownership is part of the filter: a foreign product looks absent
    product = await db.products.find_one_and_update(
        {"_id": oid, "seller_id": seller["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound(NOT_FOUND_OR_DENIED)

    await _invalidate_listings(cache, oid)

    logger.info("PRODUCT_UPDATED product=%s fields=%s", oid, ",".join(sorted(changes)))
    return serialize_doc(product)


async def delete_product(db, cache: Cache, user: dict, product_id: str) -> None:
    oid = parse_object_id(product_id, "product ID")

    seller = await get_seller_for_user(db, user["_id"])
    if not seller:
        raise NotFound(NOT_FOUND_OR_DENIED)

    result = await db.products.delete_one({"_id": oid, "seller_id": seller["_id"]})
    if not result.deleted_count:
        raise NotFound(NOT_FOUND_OR_DENIED)

    await _invalidate_listings(cache, oid)

    logger.info("PRODUCT_DELETED product=%s seller=%s", oid, seller["_id"])


# =========================
# FILTER OPTIONS
# =========================

async def get_filter_options(db, cache: Cache) -> tuple[dict, bool]:
    generation = await cache.listing_generation()
    key = None
    if generation is not None:
        key = filter_options_key(generation)
        cached = await cache.get_json(key)
        if cached is not None:
            return cached, True

    active = {"status": "active"}
    categories, tags, states, price_rows = await asyncio.gather(
        db.products.distinct("category", active),
        db.products.distinct("sustainability_tags", active),
        db.products.distinct("serviceable_geography.states", active),
        db.products.aggregate([
            {"$match": active},
            {"$group": {
                "_id": None,
                "min_price": {"$min": "$pricing.base_price"},
                "max_price": {"$max": "$pricing.base_price"},
            }},
        ]).to_list(length=1),
    )

    price_range = dict(DEFAULT_PRICE_RANGE)
    if price_rows:
        price_range = {
            "min_price": price_rows[0]["min_price"],
            "max_price": price_rows[0]["max_price"],
        }

    options = {
        "categories": sorted(c for c in categories if c),
        "sustainability_tags": sorted(t for t in tags if t),
        "states": sorted(s for s in states if s),
        "price_range": price_range,
    }

    if key is not None:
        await cache.set_json(key, options, FILTER_OPTIONS_TTL)
    return options, False
