from motor.motor_asyncio import AsyncIOMotorClient

from config.env import MONGODB_URI, STORE_TIMEOUT_MS

_client = None
_db = None


def connect_db(uri: str | None = None):
    """
    Open the process-wide Mongo client.
    Every operation inherits the store timeout, so an unreachable
    server surfaces as a timeout instead of a hung request.
    """
    global _client, _db

    uri = uri or MONGODB_URI
    if not uri:
        raise RuntimeError("MONGODB_URI not set")

    _client = AsyncIOMotorClient(
        uri,
        serverSelectionTimeoutMS=STORE_TIMEOUT_MS,
        connectTimeoutMS=STORE_TIMEOUT_MS,
        socketTimeoutMS=STORE_TIMEOUT_MS,
    )
    _db = _client.get_default_database()
    return _db


def close_db():
    global _client, _db

    if _client is not None:
        _client.close()
    _client = None
    _db = None


def get_db():
    if _db is None:
        raise RuntimeError("Database not initialised")
    return _db
