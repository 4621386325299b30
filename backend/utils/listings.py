import re
from typing import Iterable, List, Optional

from pymongo import ASCENDING, DESCENDING

from config.constants import RELATED_LISTINGS_LIMIT, SORT_FIELDS
from utils.errors import ValidationFailed


def parse_tags_param(tags: Optional[str]) -> Optional[List[str]]:
    """`tags=a, b,,c` -> ["a", "b", "c"]; None when nothing usable is given."""
    if not tags:
        return None
    parsed = [t.strip().lower() for t in tags.split(",") if t.strip()]
    return parsed or None


def build_listing_query(
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    condition: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    location: Optional[str] = None,
    tags: Optional[List[str]] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
):
    """
    Build the Mongo filter, sort keys and projection for the public listing search.

    Only available listings are matched. Text search ranks by text score
    before the requested sort field.
    """
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationFailed("Minimum price cannot be greater than maximum price")

    if sort_by not in SORT_FIELDS:
        raise ValidationFailed(
            f"Invalid sort field. Allowed fields are: {', '.join(SORT_FIELDS)}"
        )

    query: dict = {"is_available": True}
    sort: list = []
    projection = None

    # ---- text search ----
    if search and search.strip():
        query["$text"] = {"$search": search.strip()}
        projection = {"score": {"$meta": "textScore"}}
        sort.append(("score", {"$meta": "textScore"}))

    # ---- filters ----
    if category:
        query["category"] = category

    if condition:
        query["condition"] = condition

    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price

    if location and location.strip():
        query["location"] = {"$regex": re.escape(location.strip()), "$options": "i"}

    if tags:
        query["tags"] = {"$in": tags}

    # ---- sorting ----
    direction = ASCENDING if (sort_order or "").lower() == "asc" else DESCENDING
    sort.append((SORT_FIELDS[sort_by], direction))

    return query, sort, projection


def applied_filters(
    *,
    search,
    category,
    condition,
    min_price,
    max_price,
    location,
    tags,
    sort_by,
    sort_order,
) -> dict:
    return {
        "search": search or None,
        "category": category or None,
        "condition": condition or None,
        "priceRange": {"min": min_price, "max": max_price},
        "location": location or None,
        "tags": tags or None,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    }


async def load_sellers(db, user_ids: Iterable) -> dict:
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}

    sellers = {}
    async for user in db.users.find(
        {"_id": {"$in": ids}},
        {"username": 1, "avatar": 1},
    ):
        sellers[user["_id"]] = user
    return sellers


async def load_listings(db, listing_ids: Iterable) -> dict:
    ids = list({lid for lid in listing_ids if lid is not None})
    if not ids:
        return {}

    listings = {}
    async for listing in db.listings.find({"_id": {"$in": ids}}):
        listings[listing["_id"]] = listing
    return listings


async def find_related_listings(db, listing: dict, limit: int = RELATED_LISTINGS_LIMIT) -> list:
    cursor = (
        db.listings
        .find({
            "_id": {"$ne": listing["_id"]},
            "category": listing.get("category"),
            "is_available": True,
        })
        .sort([("views", DESCENDING), ("created_at", DESCENDING)])
        .limit(limit)
    )
    return [doc async for doc in cursor]


async def search_suggestions(db, q: str, limit: int) -> list:
    pattern = re.escape(q.strip())
    cursor = db.listings.find(
        {
            "is_available": True,
            "$or": [
                {"title": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
                {"tags": {"$regex": pattern, "$options": "i"}},
            ],
        },
        {"title": 1},
    ).sort("views", DESCENDING)

    suggestions: list = []
    async for doc in cursor:
        title = (doc.get("title") or "").strip().lower()
        if title and title not in suggestions:
            suggestions.append(title)
        if len(suggestions) >= limit:
            break
    return suggestions
