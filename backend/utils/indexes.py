import logging

from pymongo import ASCENDING, DESCENDING, GEOSPHERE, TEXT
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)

# IndexOptionsConflict / IndexKeySpecsConflict
_INDEX_CONFLICT_CODES = {85, 86}


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create an index; when an index with the same key pattern exists under
    other options/name, drop it and create ours.
    """
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in _INDEX_CONFLICT_CODES:
            raise

    wanted = list(keys)
    async for idx in collection.list_indexes():
        name = idx.get("name")
        if list(idx.get("key", {}).items()) == wanted and name != kwargs.get("name"):
            logger.warning("INDEX_REPLACED collection=%s index=%s", collection.name, name)
            await collection.drop_index(name)

    await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Users
    await _create_index_safe(
        db.users,
        [("email", ASCENDING)],
        name="users_email_unique_idx",
        unique=True,
    )

    # Seller / buyer profiles (one per user)
    await _create_index_safe(
        db.sellers,
        [("user_id", ASCENDING)],
        name="sellers_user_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.buyers,
        [("user_id", ASCENDING)],
        name="buyers_user_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.buyers,
        [("location", GEOSPHERE)],
        name="buyers_location_2dsphere_idx",
    )

    # Products: listing filters
    await _create_index_safe(
        db.products,
        [("seller_id", ASCENDING), ("status", ASCENDING)],
        name="products_seller_status_idx",
    )
    await _create_index_safe(
        db.products,
        [("category", ASCENDING), ("status", ASCENDING)],
        name="products_category_status_idx",
    )
    await _create_index_safe(
        db.products,
        [("pricing.base_price", ASCENDING)],
        name="products_base_price_idx",
    )
    await _create_index_safe(
        db.products,
        [("sustainability_tags", ASCENDING)],
        name="products_sustainability_tags_idx",
    )
    await _create_index_safe(
        db.products,
        [("serviceable_geography.states", ASCENDING)],
        name="products_states_idx",
    )
    await _create_index_safe(
        db.products,
        [("status", ASCENDING), ("created_at", DESCENDING)],
        name="products_status_created_idx",
    )
    await _create_index_safe(
        db.products,
        [("seller_id", ASCENDING), ("created_at", DESCENDING)],
        name="products_seller_created_idx",
    )
    await _create_index_safe(
        db.products,
        [
            ("product_name", TEXT),
            ("product_type", TEXT),
            ("features", TEXT),
            ("benefits", TEXT),
        ],
        name="products_text_idx",
    )
