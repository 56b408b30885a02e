import math
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from config.constants import PUBLIC_PAGE_SIZE, MAX_PAGE_SIZE
from utils.errors import ValidationError

# =========================
# Sorting
# =========================

# API sort names (camelCase and snake_case) -> document paths
SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
    "price": "pricing.base_price",
    "basePrice": "pricing.base_price",
    "base_price": "pricing.base_price",
    "productName": "product_name",
    "product_name": "product_name",
    "name": "product_name",
    "views": "views",
    "moq": "moq.quantity",
}

SORT_ORDERS = {"asc": 1, "desc": -1}


# =========================
# Filter input
# =========================

class ProductFilters(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    state: Optional[str] = None
    city: Optional[str] = None
    sustainability_tag: Optional[str] = None
    min_moq: Optional[float] = None
    max_moq: Optional[float] = None
    seller: Optional[str] = None
    status: Optional[str] = None

    page: int = Field(1, ge=1)
    limit: int = Field(PUBLIC_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    sort_by: str = "createdAt"
    sort_order: str = "desc"


# =========================
# Predicate builders
# =========================

def _range(lower, upper) -> dict:
    bounds = {}
    if lower is not None:
        bounds["$gte"] = lower
    if upper is not None:
        bounds["$lte"] = upper
    return bounds


def _text_search(search: str) -> dict:
    pattern = re.escape(search.strip())
    return {
        "$or": [
            {"product_name": {"$regex": pattern, "$options": "i"}},
            {"product_type": {"$regex": pattern, "$options": "i"}},
            {"features": {"$regex": pattern, "$options": "i"}},
            {"benefits": {"$regex": pattern, "$options": "i"}},
        ]
    }


def _location(state: str) -> dict:
    return {
        "$or": [
            {"serviceable_geography.states": state},
            {"serviceable_geography.nationwide": True},
        ]
    }


def build_product_query(filters: ProductFilters, *, seller_id=None, public: bool = True) -> dict:
    """
    Translate listing filters into a Mongo predicate.

    Each filter dimension becomes its own clause and the clauses are
    joined with $and, so two $or dimensions (text search and location)
    never overwrite each other.

    ``seller_id`` is the already-resolved seller ObjectId (or None).
    ``public`` pins the listing to active products.
    """
    clauses: List[dict] = []

    if public:
        clauses.append({"status": "active"})
    elif filters.status and filters.status != "all":
        clauses.append({"status": filters.status})

    if filters.search and filters.search.strip():
        clauses.append(_text_search(filters.search))

    if filters.category and filters.category != "all":
        clauses.append({"category": filters.category})

    price = _range(filters.min_price, filters.max_price)
    if price:
        clauses.append({"pricing.base_price": price})

    if filters.state:
        clauses.append(_location(filters.state))

    if filters.city:
        clauses.append({"serviceable_geography.cities": filters.city})

    if filters.sustainability_tag:
        clauses.append({"sustainability_tags": filters.sustainability_tag})

    moq = _range(filters.min_moq, filters.max_moq)
    if moq:
        clauses.append({"moq.quantity": moq})

    if seller_id is not None:
        clauses.append({"seller_id": seller_id})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


# =========================
# Pagination / sorting
# =========================

def build_sort(sort_by: str, sort_order: str) -> List[Tuple[str, int]]:
    field = SORT_FIELDS.get(sort_by)
    if field is None:
        raise ValidationError(errors=[f"sortBy: must be one of {', '.join(sorted(SORT_FIELDS))}"])

    direction = SORT_ORDERS.get((sort_order or "").lower())
    if direction is None:
        raise ValidationError(errors=["sortOrder: must be 'asc' or 'desc'"])

    # _id tie-breaker keeps page boundaries stable for equal sort values
    return [(field, direction), ("_id", direction)]


def build_pagination(page: int, limit: int) -> Tuple[int, int]:
    page = max(page, 1)
    limit = max(limit, 1)
    return (page - 1) * limit, limit


def pagination_meta(page: int, limit: int, total: int, returned: int, *, total_key: str = "total_products") -> dict:
    skip = (page - 1) * limit
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        total_key: total,
        "has_next": skip + returned < total,
        "has_prev": page > 1,
    }
