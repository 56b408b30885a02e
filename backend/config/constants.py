# backend/config/constants.py

# -----------------------------
# CACHE TTLs (seconds)
# -----------------------------

PRODUCT_LIST_TTL = 60 * 10           # listing pages
PRODUCT_DETAIL_TTL = 60 * 30         # product detail page
FILTER_OPTIONS_TTL = 60 * 60         # catalogue filter options
USER_CACHE_TTL = 60 * 60             # identity summary
SELLER_PROFILE_TTL = 60 * 30         # seller profile page

# -----------------------------
# PAGINATION
# -----------------------------

PUBLIC_PAGE_SIZE = 12
SELLER_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DASHBOARD_RECENT_PRODUCTS = 5

# -----------------------------
# CATALOGUE DEFAULTS
# -----------------------------

DEFAULT_CURRENCY = "INR"
DEFAULT_COUNTRY = "India"

# Fallback when no active product has a price yet
DEFAULT_PRICE_RANGE = {"min_price": 0, "max_price": 100000}

# -----------------------------
# UPLOAD LIMITS
# -----------------------------

MAX_PRODUCT_IMAGES = 5
MAX_PRODUCT_DOCUMENTS = 3
MAX_SELLER_DOCUMENTS = 10
MAX_SELLER_CERTIFICATIONS = 5
MAX_UPLOAD_BYTES = 5 * 1024 * 1024

IMAGE_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
DOCUMENT_CONTENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
CERTIFICATION_CONTENT_TYPES = {"application/pdf", "image/jpeg", "image/jpg", "image/png"}
