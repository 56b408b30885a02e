from bson import ObjectId
from bson.errors import InvalidId

from utils.errors import ValidationError

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {name}")


def try_object_id(value):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


# -------------------------------
# Seller Referential Guard
# -------------------------------

async def get_seller_for_user(db, user_id):
    """Seller profile owned by the given user, or None."""
    return await db.sellers.find_one({"user_id": user_id})
