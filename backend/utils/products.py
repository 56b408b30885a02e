from utils.mongo import serialize_doc, to_jsonable


def seller_summary(seller: dict | None, *, with_contact: bool = False) -> dict | None:
    if not seller:
        return None

    summary = {
        "id": str(seller["_id"]),
        "company_name": seller.get("company_name"),
        "brand_name": seller.get("brand_name"),
        "verification_status": seller.get("verification_status", "pending"),
        "badges": seller.get("badges", []),
    }
    if with_contact:
        summary["contact_details"] = to_jsonable(seller.get("contact_details") or {})
    return summary


def build_product_card(product: dict, seller: dict | None) -> dict:
    card = serialize_doc(product)
    card["seller"] = seller_summary(seller)
    return card


def build_product_detail(product: dict, seller: dict | None) -> dict:
    detail = serialize_doc(product)
    detail["seller"] = seller_summary(seller, with_contact=True)
    return detail


def map_image_uploads(urls, product_name: str) -> list:
    """First uploaded image is the primary one."""
    return [
        {
            "url": url,
            "alt": f"{product_name} image {index + 1}",
            "is_primary": index == 0,
        }
        for index, url in enumerate(urls)
    ]


def map_document_uploads(uploads, uploaded_at) -> list:
    return [
        {
            "type": "specification_sheet",
            "name": original_name,
            "url": url,
            "uploaded_at": uploaded_at,
        }
        for original_name, url in uploads
    ]
