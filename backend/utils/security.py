from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from database import get_db
from utils.errors import Unauthorized, Forbidden
from utils.guards import try_object_id
from utils.jwt import decode_token

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db=Depends(get_db),
):
    if credentials is None:
        raise Unauthorized("Access denied. No token provided.")

    payload = decode_token(credentials.credentials)

    user_id = try_object_id(payload.get("sub"))
    if user_id is None:
        raise Unauthorized("Invalid token payload")

    user = await db.users.find_one({"_id": user_id}, {"password_hash": 0})
    if not user:
        raise Unauthorized("User not found")

    return user


def require_role(required_role: str):
    async def checker(user=Depends(get_current_user)):
        if user.get("role") != required_role:
            raise Forbidden(f"Access restricted to {required_role} accounts")
        return user

    return checker
