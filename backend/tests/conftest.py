import json
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["ENV"] = "test"
os.environ["REDIS_URL"] = ""

import fakeredis
import httpx
import pytest
import redis.exceptions
from mongomock_motor import AsyncMongoMockClient
from pymongo import ASCENDING

from database import get_db
from main import app
from utils.cache import Cache, get_cache
from utils.storage import CloudStorage, get_storage


# ==============================
# Test doubles
# ==============================

class BrokenRedis:
    """Every command fails as if the server were down."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise redis.exceptions.ConnectionError("Connection refused")

        return fail


class FakeUploader:
    """Stands in for the Cloudinary uploader and records every upload."""

    def __init__(self):
        self.calls = []

    def __call__(self, file, folder, resource_type="auto"):
        file.read()
        self.calls.append({"folder": folder, "resource_type": resource_type})
        return {
            "secure_url": f"https://res.cloudinary.com/ecosource-test/{resource_type}/upload/"
                          f"{folder}/asset-{len(self.calls)}",
        }


# ==============================
# Fixtures
# ==============================

@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["ecosource_test"]
    await database.users.create_index([("email", ASCENDING)], unique=True)
    await database.sellers.create_index([("user_id", ASCENDING)], unique=True)
    await database.buyers.create_index([("user_id", ASCENDING)], unique=True)
    return database


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return Cache(redis_client)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def storage(uploader):
    return CloudStorage(uploader=uploader, root_folder="ecosource")


@pytest.fixture
async def client(db, cache, storage):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_storage] = lambda: storage

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


# ==============================
# Payload builders
# ==============================

def product_payload(**overrides) -> dict:
    payload = {
        "product_name": "Recycled HDPE Granules",
        "product_type": "granules",
        "category": "plastics",
        "specifications": {"density": "0.95 g/cm3", "mfi": "0.3"},
        "features": ["Food grade", "Low odour"],
        "benefits": ["Cuts virgin plastic use"],
        "pricing": {"base_price": 45000, "unit": "ton"},
        "moq": {"quantity": 5, "unit": "ton"},
        "serviceable_geography": {"states": ["Maharashtra"], "cities": ["Pune"], "nationwide": False},
        "sustainability_tags": ["recycled"],
        "status": "active",
    }
    payload.update(overrides)
    return payload


def seller_profile_payload(**overrides) -> dict:
    payload = {
        "company_name": "GreenLoop Recyclers Pvt Ltd",
        "brand_name": "GreenLoop",
        "address": {"street": "12 MIDC Road", "city": "Pune", "state": "Maharashtra", "pincode": "411019"},
        "contact_details": {"email": "Sales@GreenLoop.in", "phone": "+919800000000"},
        "official_contact_person": {"name": "Asha Rao", "designation": "Director"},
        "business_details": {"gstin": "27ABCDE1234F1Z5", "pan": "ABCDE1234F"},
    }
    payload.update(overrides)
    return payload


async def register(client, email: str, role: str = "seller", password: str = "secret123") -> dict:
    resp = await client.post("/api/auth/register", json={"email": email, "password": password, "role": role})
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    return {
        "id": data["user"]["id"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


async def submit_seller_profile(client, headers, payload=None, files=None):
    return await client.post(
        "/api/seller/profile",
        data={"data": json.dumps(payload or seller_profile_payload())},
        files=files,
        headers=headers,
    )


async def create_product(client, headers, payload=None, files=None):
    resp = await client.post(
        "/api/products",
        data={"data": json.dumps(payload or product_payload())},
        files=files,
        headers=headers,
    )
    return resp


@pytest.fixture
async def seller(client):
    """A registered seller with a completed profile."""
    account = await register(client, "seller@greenloop.in")
    resp = await submit_seller_profile(client, account["headers"])
    assert resp.status_code == 201, resp.text
    account["seller_id"] = resp.json()["data"]["id"]
    return account


@pytest.fixture
async def other_seller(client):
    account = await register(client, "seller@metalworks.in")
    resp = await submit_seller_profile(
        client, account["headers"], seller_profile_payload(company_name="MetalWorks Ltd")
    )
    assert resp.status_code == 201, resp.text
    account["seller_id"] = resp.json()["data"]["id"]
    return account
