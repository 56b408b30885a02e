from datetime import datetime, date
from bson import ObjectId


def to_jsonable(value):
    """
    Recursively convert BSON values into JSON-safe ones.
    ObjectId -> str, datetime/date -> ISO string.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def serialize_doc(doc: dict, *, exclude=()) -> dict:
    if not doc:
        return doc

    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = doc.pop("_id")
    for key in exclude:
        doc.pop(key, None)
    return to_jsonable(doc)
