# backend/config/constants.py

# -----------------------------
# CART
# -----------------------------

MAX_CART_QUANTITY = 10               # per listing, per buyer

# -----------------------------
# LISTINGS
# -----------------------------

MAX_LISTING_PRICE = 99999.99
MAX_TAGS = 10
MAX_TAG_LENGTH = 30
RELATED_LISTINGS_LIMIT = 4

IMAGE_URL_PATTERN = r"(?i)^https?://.+\.(jpg|jpeg|png|gif|webp)$"

# -----------------------------
# PAGINATION
# -----------------------------

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# Query param name -> stored field
SORT_FIELDS = {
    "createdAt": "created_at",
    "price": "price",
    "title": "title",
    "views": "views",
    "updatedAt": "updated_at",
}

# -----------------------------
# PURCHASES
# -----------------------------

RECENT_PURCHASES_LIMIT = 5
MAX_NOTES_LENGTH = 500

# -----------------------------
# AUTH
# -----------------------------

LOGIN_MAX_ATTEMPTS = 10
LOGIN_WINDOW_SECONDS = 300
