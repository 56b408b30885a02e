SUMMARY_PROJECTION = {
    "company_name": 1,
    "brand_name": 1,
    "verification_status": 1,
    "badges": 1,
    "contact_details": 1,
}


async def get_sellers_by_id(db, seller_ids) -> dict:
    ids = list({sid for sid in seller_ids if sid is not None})
    if not ids:
        return {}

    sellers = {}
    async for seller in db.sellers.find({"_id": {"$in": ids}}, SUMMARY_PROJECTION):
        sellers[seller["_id"]] = seller
    return sellers
