import json

import redis.exceptions
from bson import ObjectId
from cloudinary.exceptions import Error as CloudinaryError

from conftest import BrokenRedis, create_product, product_payload, register
from main import app
from utils.cache import Cache, LISTING_GENERATION_KEY, get_cache, product_key
from utils.storage import CloudStorage, get_storage


PNG = ("panel.png", b"\x89PNG\r\n\x1a\n", "image/png")
PDF = ("datasheet.pdf", b"%PDF-1.4", "application/pdf")


async def _new_product(client, seller, **overrides):
    resp = await create_product(client, seller["headers"], product_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _ids(resp):
    return [p["id"] for p in resp.json()["data"]["products"]]


# =========================
# CREATE
# =========================

async def test_create_product_maps_uploads(client, seller, uploader):
    files = [("images", PNG), ("images", ("side.png", b"\x89PNG", "image/png")), ("documents", PDF)]
    resp = await create_product(client, seller["headers"], files=files)

    assert resp.status_code == 201, resp.text
    product = resp.json()["data"]
    assert product["seller_id"] == seller["seller_id"]
    assert product["status"] == "active"
    assert product["views"] == 0
    assert product["specifications"] == {"density": "0.95 g/cm3", "mfi": "0.3"}

    images = product["images"]
    assert [img["is_primary"] for img in images] == [True, False]
    assert all(img["url"].startswith("https://res.cloudinary.com/") for img in images)
    assert "/ecosource/images/" in images[0]["url"]
    assert images[0]["alt"] == "Recycled HDPE Granules image 1"

    assert product["documents"][0]["type"] == "specification_sheet"
    assert product["documents"][0]["name"] == "datasheet.pdf"

    assert [c["resource_type"] for c in uploader.calls] == ["image", "image", "auto"]
    assert uploader.calls[-1]["folder"] == "ecosource/documents"


async def test_create_requires_seller_profile(client, db):
    account = await register(client, "newseller@x.in")

    resp = await create_product(client, account["headers"])

    assert resp.status_code == 404
    assert resp.json()["success"] is False
    assert await db.products.count_documents({}) == 0


async def test_create_rejects_invalid_payload_before_writing(client, seller, db, redis_client):
    resp = await create_product(client, seller["headers"], product_payload(category="wood"))

    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation Error"
    assert any(err.startswith("category") for err in body["errors"])
    assert await db.products.count_documents({}) == 0
    assert await redis_client.get("products:generation") is None


async def test_create_rejects_wrong_upload_type(client, seller, db):
    resp = await create_product(client, seller["headers"], files=[("images", PDF)])

    assert resp.status_code == 400
    assert await db.products.count_documents({}) == 0


async def test_buyer_cannot_create_product(client):
    buyer = await register(client, "buyer@x.in", role="buyer")
    resp = await create_product(client, buyer["headers"])
    assert resp.status_code == 403


async def test_create_requires_token(client):
    resp = await create_product(client, {})
    assert resp.status_code == 401


# =========================
# LISTING + CACHE
# =========================

async def test_listing_is_served_from_cache_on_repeat(client, seller):
    await _new_product(client, seller)

    first = await client.get("/api/products", params={"category": "plastics"})
    second = await client.get("/api/products", params={"category": "plastics"})

    assert first.json()["cached"] is False
    assert second.json()["cached"] is True
    assert json.dumps(first.json()["data"]["products"]) == json.dumps(second.json()["data"]["products"])

    product = first.json()["data"]["products"][0]
    assert product["seller"]["company_name"] == "GreenLoop Recyclers Pvt Ltd"
    assert first.json()["data"]["pagination"] == {
        "current_page": 1,
        "total_pages": 1,
        "total_products": 1,
        "has_next": False,
        "has_prev": False,
    }


async def test_price_update_drops_product_from_cached_listing(client, seller):
    product = await _new_product(client, seller)
    params = {"category": "plastics", "maxPrice": 50000}

    resp = await client.get("/api/products", params=params)
    assert _ids(resp) == [product["id"]]
    resp = await client.get("/api/products", params=params)
    assert resp.json()["cached"] is True

    resp = await client.put(
        f"/api/products/{product['id']}",
        json={"pricing": {"base_price": 60000, "unit": "ton"}},
        headers=seller["headers"],
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["pricing"]["base_price"] == 60000

    resp = await client.get("/api/products", params=params)
    assert resp.json()["cached"] is False
    assert _ids(resp) == []


async def test_create_and_delete_refresh_listing(client, seller):
    await client.get("/api/products")

    product = await _new_product(client, seller)
    resp = await client.get("/api/products")
    assert resp.json()["cached"] is False
    assert _ids(resp) == [product["id"]]

    resp = await client.delete(f"/api/products/{product['id']}", headers=seller["headers"])
    assert resp.status_code == 200

    resp = await client.get("/api/products")
    assert _ids(resp) == []


async def test_listing_hides_non_active_products(client, seller):
    await _new_product(client, seller, status="draft")
    active = await _new_product(client, seller, product_name="Copper Scrap", category="metals")

    resp = await client.get("/api/products")
    assert _ids(resp) == [active["id"]]


async def test_search_and_state_filters_combine(client, seller):
    await _new_product(client, seller, product_name="HDPE Regrind")
    nationwide = await _new_product(
        client, seller,
        product_name="HDPE Flakes",
        serviceable_geography={"states": [], "cities": [], "nationwide": True},
    )
    await _new_product(
        client, seller,
        product_name="Copper Wire",
        category="metals",
        serviceable_geography={"states": ["Karnataka"], "cities": [], "nationwide": False},
    )

    resp = await client.get("/api/products", params={"search": "hdpe", "state": "Karnataka"})

    assert _ids(resp) == [nationwide["id"]]


async def test_listing_pagination_and_sort(client, seller):
    prices = [100, 300, 200]
    for i, price in enumerate(prices):
        await _new_product(client, seller, product_name=f"Lot {i}",
                           pricing={"base_price": price, "unit": "kg"})

    resp = await client.get("/api/products", params={"sortBy": "price", "sortOrder": "asc", "limit": 2})
    data = resp.json()["data"]
    assert [p["pricing"]["base_price"] for p in data["products"]] == [100, 200]
    assert data["pagination"]["total_pages"] == 2
    assert data["pagination"]["has_next"] is True

    resp = await client.get("/api/products", params={"sortBy": "price", "sortOrder": "asc", "limit": 2, "page": 2})
    assert [p["pricing"]["base_price"] for p in resp.json()["data"]["products"]] == [300]


async def test_listing_rejects_bad_query(client):
    assert (await client.get("/api/products", params={"page": 0})).status_code == 400
    assert (await client.get("/api/products", params={"sortBy": "password_hash"})).status_code == 400


async def test_seller_filter(client, seller, other_seller):
    mine = await _new_product(client, seller)
    await _new_product(client, other_seller, product_name="Aluminium Ingots", category="metals")

    resp = await client.get("/api/products", params={"seller": seller["seller_id"]})
    assert _ids(resp) == [mine["id"]]

    # unknown seller ids are ignored
    resp = await client.get("/api/products", params={"seller": str(ObjectId())})
    assert len(_ids(resp)) == 2


# =========================
# DETAIL + VIEWS
# =========================

async def test_detail_views_count_every_read(client, seller, db):
    product = await _new_product(client, seller)
    oid = ObjectId(product["id"])

    first = await client.get(f"/api/products/{product['id']}")
    assert first.json()["cached"] is False
    assert first.json()["data"]["views"] == 0
    assert first.json()["data"]["seller"]["contact_details"]["email"] == "sales@greenloop.in"

    second = await client.get(f"/api/products/{product['id']}")
    assert second.json()["cached"] is True
    # cached body keeps the count it was cached with
    assert second.json()["data"]["views"] == 0

    stored = await db.products.find_one({"_id": oid})
    assert stored["views"] == 2


async def test_detail_not_found_and_bad_id(client):
    assert (await client.get(f"/api/products/{ObjectId()}")).status_code == 404
    assert (await client.get("/api/products/not-an-id")).status_code == 400


async def test_draft_detail_resolves_and_counts_view(client, seller, db):
    draft = await _new_product(client, seller, status="draft")

    resp = await client.get(f"/api/products/{draft['id']}")

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "draft"
    stored = await db.products.find_one({"_id": ObjectId(draft["id"])})
    assert stored["views"] == 1


async def test_update_drops_detail_cache(client, seller, cache):
    product = await _new_product(client, seller)
    await client.get(f"/api/products/{product['id']}")
    assert await cache.get_json(product_key(product["id"])) is not None

    resp = await client.put(
        f"/api/products/{product['id']}",
        json={"product_name": "Food-grade HDPE"},
        headers=seller["headers"],
    )
    assert resp.status_code == 200
    assert await cache.get_json(product_key(product["id"])) is None

    resp = await client.get(f"/api/products/{product['id']}")
    assert resp.json()["cached"] is False
    assert resp.json()["data"]["product_name"] == "Food-grade HDPE"
    assert resp.json()["data"]["views"] == 1


# =========================
# OWNERSHIP
# =========================

async def test_other_seller_cannot_delete(client, seller, other_seller):
    product = await _new_product(client, seller)

    resp = await client.delete(f"/api/products/{product['id']}", headers=other_seller["headers"])
    assert resp.status_code == 404

    resp = await client.get(f"/api/products/{product['id']}")
    assert resp.status_code == 200


async def test_other_seller_cannot_update(client, seller, other_seller, db):
    product = await _new_product(client, seller)

    resp = await client.put(
        f"/api/products/{product['id']}",
        json={"status": "inactive"},
        headers=other_seller["headers"],
    )
    assert resp.status_code == 404

    stored = await db.products.find_one({"_id": ObjectId(product["id"])})
    assert stored["status"] == "active"


async def test_update_rejects_nulling_required_fields(client, seller):
    product = await _new_product(client, seller)

    resp = await client.put(
        f"/api/products/{product['id']}",
        json={"pricing": None},
        headers=seller["headers"],
    )
    assert resp.status_code == 400


# =========================
# SELLER-OWNED LISTING
# =========================

async def test_my_products_covers_every_status(client, seller, other_seller):
    await _new_product(client, seller, status="draft")
    await _new_product(client, seller)
    await _new_product(client, other_seller)

    resp = await client.get("/api/products/seller/my-products", headers=seller["headers"])
    data = resp.json()["data"]
    assert len(data["products"]) == 2
    assert data["pagination"]["total"] == 2

    resp = await client.get(
        "/api/products/seller/my-products", params={"status": "draft"}, headers=seller["headers"]
    )
    assert [p["status"] for p in resp.json()["data"]["products"]] == ["draft"]


async def test_my_products_pages_by_ten(client, seller):
    for i in range(11):
        await _new_product(client, seller, product_name=f"Bale {i}")

    resp = await client.get("/api/products/seller/my-products", headers=seller["headers"])
    data = resp.json()["data"]
    assert len(data["products"]) == 10
    assert data["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total": 11,
        "has_next": True,
        "has_prev": False,
    }

    resp = await client.get(
        "/api/products/seller/my-products", params={"page": 2}, headers=seller["headers"]
    )
    assert [p["product_name"] for p in resp.json()["data"]["products"]] == ["Bale 0"]


# =========================
# FILTER OPTIONS
# =========================

async def test_filter_options_cached_and_refreshed_by_writes(client, seller):
    await _new_product(client, seller)

    first = await client.get("/api/products/filters/options")
    assert first.json()["cached"] is False
    assert first.json()["data"] == {
        "categories": ["plastics"],
        "sustainability_tags": ["recycled"],
        "states": ["Maharashtra"],
        "price_range": {"min_price": 45000, "max_price": 45000},
    }
    assert (await client.get("/api/products/filters/options")).json()["cached"] is True

    await _new_product(client, seller, category="metals", pricing={"base_price": 900, "unit": "kg"})

    resp = await client.get("/api/products/filters/options")
    assert resp.json()["cached"] is False
    assert resp.json()["data"]["categories"] == ["metals", "plastics"]
    assert resp.json()["data"]["price_range"] == {"min_price": 900, "max_price": 45000}


async def test_filter_options_fallback_price_range(client):
    resp = await client.get("/api/products/filters/options")
    assert resp.json()["data"]["price_range"] == {"min_price": 0, "max_price": 100000}


# =========================
# CACHE OUTAGE
# =========================

async def test_requests_succeed_when_cache_is_down(client, seller, db):
    product = await _new_product(client, seller)
    app.dependency_overrides[get_cache] = lambda: Cache(BrokenRedis())

    resp = await client.get("/api/products")
    assert resp.status_code == 200
    assert resp.json()["cached"] is False
    assert _ids(resp) == [product["id"]]

    for expected_views in (0, 1):
        resp = await client.get(f"/api/products/{product['id']}")
        assert resp.json()["cached"] is False
        assert resp.json()["data"]["views"] == expected_views

    resp = await client.put(
        f"/api/products/{product['id']}", json={"status": "inactive"}, headers=seller["headers"]
    )
    assert resp.status_code == 200

    resp = await client.get("/api/products")
    assert _ids(resp) == []


class GenerationOutage:
    """Real fake redis, except the listing generation can be made unreadable."""

    def __init__(self, client):
        self._client = client
        self.generation_down = False

    async def get(self, key):
        if self.generation_down and key == LISTING_GENERATION_KEY:
            raise redis.exceptions.TimeoutError("Timeout reading from socket")
        return await self._client.get(key)

    def __getattr__(self, name):
        return getattr(self._client, name)


async def test_unreadable_generation_bypasses_cache(client, seller, redis_client):
    flaky = GenerationOutage(redis_client)
    app.dependency_overrides[get_cache] = lambda: Cache(flaky)

    resp = await client.get("/api/products")
    assert _ids(resp) == []
    options = await client.get("/api/products/filters/options")
    assert options.json()["data"]["categories"] == []

    product = await _new_product(client, seller)
    flaky.generation_down = True

    for _ in range(2):
        resp = await client.get("/api/products")
        assert resp.json()["cached"] is False
        assert _ids(resp) == [product["id"]]
        assert resp.json()["data"]["pagination"]["total_products"] == 1

        options = await client.get("/api/products/filters/options")
        assert options.json()["cached"] is False
        assert options.json()["data"]["categories"] == ["plastics"]

    flaky.generation_down = False
    resp = await client.get("/api/products")
    assert resp.json()["cached"] is False
    assert _ids(resp) == [product["id"]]


async def test_upload_outage_rejects_create(client, seller, db, redis_client):
    def failing_upload(file, folder, resource_type="auto"):
        raise CloudinaryError("Server returned unexpected status code - 502")

    app.dependency_overrides[get_storage] = lambda: CloudStorage(uploader=failing_upload)

    resp = await create_product(client, seller["headers"], files=[("images", PNG)])

    assert resp.status_code == 503
    assert await db.products.count_documents({}) == 0
    assert await redis_client.get(LISTING_GENERATION_KEY) is None


async def test_missing_secure_url_is_an_upload_failure(client, seller, db):
    app.dependency_overrides[get_storage] = lambda: CloudStorage(uploader=lambda *a, **kw: {})

    resp = await create_product(client, seller["headers"], files=[("images", PNG)])

    assert resp.status_code == 503
    assert await db.products.count_documents({}) == 0
