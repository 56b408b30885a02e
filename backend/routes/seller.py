from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from typing import List, Optional

from database import get_db
from models.seller import SellerProfileIn
from services import sellers as seller_service
from utils.cache import get_cache
from utils.security import require_role
from utils.storage import get_storage
from utils.validators import parse_form_json

router = APIRouter(
    prefix="/seller",
    tags=["Seller"]
)


# ----------------------------------------
# SELLER PROFILE
# ----------------------------------------

@router.post("/profile")
async def upsert_profile(
    data: str = Form(...),
    documents: Optional[List[UploadFile]] = File(None),
    certifications: Optional[List[UploadFile]] = File(None),
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
    cache=Depends(get_cache),
    storage=Depends(get_storage),
):
    payload = parse_form_json(SellerProfileIn, data)

    profile, created = await seller_service.upsert_seller_profile(
        db, cache, storage, seller, payload,
        documents=documents, certifications=certifications,
    )

    return JSONResponse(
        status_code=201 if created else 200,
        content={
            "success": True,
            "message": "Profile created successfully" if created else "Profile updated successfully",
            "data": profile,
        },
    )


@router.get("/profile")
async def get_profile(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
    cache=Depends(get_cache),
):
    profile = await seller_service.get_seller_profile(db, cache, seller)

    return {"success": True, "data": profile}


# ======================================================
# SELLER DASHBOARD
# ======================================================

@router.get("/dashboard")
async def dashboard(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    data = await seller_service.get_dashboard(db, seller)

    return {"success": True, "data": data}
