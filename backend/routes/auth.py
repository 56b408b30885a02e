from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from database import get_db
from models.buyer import BuyerProfileIn
from models.user import UserCreate, UserLogin
from services import auth as auth_service
from utils.cache import get_cache
from utils.security import get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])


# ======================
# Register / Login
# ======================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    result = await auth_service.register(db, cache, data)

    return {
        "success": True,
        "message": "User registered successfully",
        "data": result,
    }


@router.post("/login")
async def login(
    data: UserLogin,
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    result = await auth_service.login(db, cache, data)

    return {
        "success": True,
        "message": "Login successful",
        "data": result,
    }


# ======================
# Current User
# ======================

@router.get("/me")
async def me(
    user=Depends(get_current_user),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    return {"success": True, "data": await auth_service.me(db, cache, user)}


@router.post("/logout")
async def logout(
    user=Depends(get_current_user),
    cache=Depends(get_cache),
):
    await auth_service.logout(cache, user)

    return {"success": True, "message": "Logged out successfully"}


# ======================
# Buyer profile
# ======================

@router.post("/buyer/profile")
async def buyer_profile(
    data: BuyerProfileIn,
    user=Depends(get_current_user),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    profile, created = await auth_service.upsert_buyer_profile(db, cache, user, data)

    return JSONResponse(
        status_code=201 if created else 200,
        content={
            "success": True,
            "message": "Buyer profile created successfully" if created else "Buyer profile updated successfully",
            "data": profile,
        },
    )
