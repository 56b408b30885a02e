from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from typing import List, Optional

from config.constants import PUBLIC_PAGE_SIZE, SELLER_PAGE_SIZE, MAX_PAGE_SIZE
from database import get_db
from models.product import ProductCreate, ProductUpdate
from services import products as product_service
from utils.cache import get_cache
from utils.query import ProductFilters
from utils.security import require_role
from utils.storage import get_storage
from utils.validators import parse_form_json

router = APIRouter(prefix="/products", tags=["Products"])


# =========================
# SELLER CREATE PRODUCT
# =========================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    data: str = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    documents: Optional[List[UploadFile]] = File(None),
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
    cache=Depends(get_cache),
    storage=Depends(get_storage),
):
    payload = parse_form_json(ProductCreate, data)

    product = await product_service.create_product(
        db, cache, storage, seller, payload, images=images, documents=documents,
    )

    return {
        "success": True,
        "message": "Product created successfully",
        "data": product,
    }


# =========================
# BUYER CATALOGUE (PUBLIC)
# =========================

@router.get("")
async def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    state: Optional[str] = None,
    city: Optional[str] = None,
    sustainability_tag: Optional[str] = Query(None, alias="sustainabilityTag"),
    min_moq: Optional[float] = Query(None, alias="minMoq"),
    max_moq: Optional[float] = Query(None, alias="maxMoq"),
    seller: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(PUBLIC_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    filters = ProductFilters(
        search=search,
        category=category,
        min_price=min_price,
        max_price=max_price,
        state=state,
        city=city,
        sustainability_tag=sustainability_tag,
        min_moq=min_moq,
        max_moq=max_moq,
        seller=seller,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    result, cached = await product_service.list_products(db, cache, filters)

    return {"success": True, "data": result, "cached": cached}


# =========================
# STATIC ROUTES (MUST BE BEFORE /{product_id})
# =========================

@router.get("/seller/my-products")
async def my_products(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(SELLER_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    filters = ProductFilters(status=status_filter, page=page, limit=limit)

    result = await product_service.list_seller_products(db, seller, filters)

    return {"success": True, "data": result}


@router.get("/filters/options")
async def filter_options(
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    options, cached = await product_service.get_filter_options(db, cache)

    return {"success": True, "data": options, "cached": cached}


# =========================
# PRODUCT DETAIL (DYNAMIC — MUST BE LAST)
# =========================

@router.get("/{product_id}")
async def product_detail(
    product_id: str,
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    product, cached = await product_service.get_product(db, cache, product_id)

    return {"success": True, "data": product, "cached": cached}


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    data: ProductUpdate,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    product = await product_service.update_product(db, cache, seller, product_id, data)

    return {
        "success": True,
        "message": "Product updated successfully",
        "data": product,
    }


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    await product_service.delete_product(db, cache, seller, product_id)

    return {"success": True, "message": "Product deleted successfully"}
