import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from database import get_db
from models.listing import (
    Category,
    Condition,
    ListingCreate,
    ListingUpdate,
    SortField,
    SortOrder,
)
from utils.errors import NotFound, ValidationFailed
from utils.guards import assert_owner, parse_object_id
from utils.listings import (
    applied_filters,
    build_listing_query,
    find_related_listings,
    load_sellers,
    parse_tags_param,
    search_suggestions,
)
from utils.money import round_money
from utils.pagination import build_pagination, clamp_limit, clamp_page, skip_for
from utils.responses import ok
from utils.security import get_current_user
from utils.serializers import serialize_listing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["Listings"])


async def _serialize_with_sellers(db, listings: list) -> list:
    sellers = await load_sellers(db, (doc.get("user_id") for doc in listings))
    return [serialize_listing(doc, sellers.get(doc.get("user_id"))) for doc in listings]


# =========================
# SEARCH / BROWSE
# =========================

@router.get("")
async def list_listings(
    category: Optional[Category] = None,
    condition: Optional[Condition] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = None,
    location: Optional[str] = None,
    tags: Optional[str] = None,
    sort_by: SortField = Query(SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    page: int = 1,
    limit: int = 10,
    db=Depends(get_db),
):
    page = clamp_page(page)
    limit = clamp_limit(limit)
    tag_list = parse_tags_param(tags)

    query, sort, projection = build_listing_query(
        search=search,
        category=category.value if category else None,
        condition=condition.value if condition else None,
        min_price=min_price,
        max_price=max_price,
        location=location,
        tags=tag_list,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )

    cursor = (
        db.listings
        .find(query, projection)
        .sort(sort)
        .skip(skip_for(page, limit))
        .limit(limit)
    )
    listings = [doc async for doc in cursor]
    total = await db.listings.count_documents(query)

    message = "Products retrieved successfully"
    if search:
        message += f' for search: "{search}"'

    return ok(
        message,
        await _serialize_with_sellers(db, listings),
        pagination=build_pagination(page, limit, total),
        filters=applied_filters(
            search=search,
            category=category.value if category else None,
            condition=condition.value if condition else None,
            min_price=min_price,
            max_price=max_price,
            location=location,
            tags=tag_list,
            sort_by=sort_by.value,
            sort_order=sort_order.value,
        ),
    )


# =========================
# STATIC ROUTES (MUST BE BEFORE /{listing_id})
# =========================

@router.get("/meta")
async def listing_meta():
    return ok(
        "Product metadata retrieved successfully",
        {
            "categories": [c.value for c in Category],
            "conditions": [c.value for c in Condition],
        },
    )


@router.get("/suggestions")
async def listing_suggestions(
    q: Optional[str] = None,
    limit: int = 5,
    db=Depends(get_db),
):
    if not q or len(q.strip()) < 2:
        raise ValidationFailed("Query must be at least 2 characters long")

    limit = min(max(limit, 1), 20)
    suggestions = await search_suggestions(db, q, limit)

    return ok(
        "Search suggestions retrieved successfully",
        {"query": q.strip(), "suggestions": suggestions},
    )


@router.get("/stats")
async def category_stats(db=Depends(get_db)):
    pipeline = [
        {"$match": {"is_available": True}},
        {"$group": {
            "_id": "$category",
            "count": {"$sum": 1},
            "averagePrice": {"$avg": "$price"},
            "minPrice": {"$min": "$price"},
            "maxPrice": {"$max": "$price"},
        }},
        {"$sort": {"count": -1}},
    ]
    rows = await db.listings.aggregate(pipeline).to_list(None)

    categories = [
        {
            "category": row["_id"],
            "productCount": row["count"],
            "averagePrice": round_money(row["averagePrice"] or 0),
            "priceRange": {"min": row["minPrice"], "max": row["maxPrice"]},
        }
        for row in rows
    ]

    return ok(
        "Category statistics retrieved successfully",
        {
            "totalProducts": sum(row["count"] for row in rows),
            "categories": categories,
        },
    )


@router.get("/mine")
async def my_listings(
    page: int = 1,
    limit: int = 10,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    page = clamp_page(page)
    limit = clamp_limit(limit)
    query = {"user_id": user["_id"]}

    cursor = (
        db.listings
        .find(query)
        .sort("created_at", DESCENDING)
        .skip(skip_for(page, limit))
        .limit(limit)
    )
    listings = [doc async for doc in cursor]
    total = await db.listings.count_documents(query)

    return ok(
        "Your products retrieved successfully",
        [serialize_listing(doc, user) for doc in listings],
        pagination=build_pagination(page, limit, total),
    )


# =========================
# CREATE
# =========================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(
    data: ListingCreate,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    now = datetime.utcnow()
    listing = {
        "user_id": user["_id"],
        "title": data.title,
        "description": data.description,
        "category": data.category.value,
        "condition": data.condition.value,
        "price": data.price,
        "image": data.image,
        "location": data.location,
        "tags": data.tags,
        "is_available": True,
        "views": 0,
        "created_at": now,
        "updated_at": now,
    }

    result = await db.listings.insert_one(listing)
    listing["_id"] = result.inserted_id
    logger.info("LISTING_CREATED listing=%s owner=%s", listing["_id"], user["_id"])

    return ok("Product created successfully", serialize_listing(listing, user))


# =========================
# DETAIL (DYNAMIC, MUST BE LAST AMONG GETs)
# =========================

@router.get("/{listing_id}")
async def listing_detail(
    listing_id: str,
    db=Depends(get_db),
):
    oid = parse_object_id(listing_id, "product ID")

    listing = await db.listings.find_one({"_id": oid})
    if not listing:
        raise NotFound("Product not found")

    try:
        await db.listings.update_one({"_id": oid}, {"$inc": {"views": 1}})
        listing["views"] = listing.get("views", 0) + 1
    except PyMongoError:
        logger.exception("LISTING_VIEW_INC_ERROR listing=%s", oid)

    try:
        related = await find_related_listings(db, listing)
    except PyMongoError:
        logger.exception("RELATED_LISTINGS_ERROR listing=%s", oid)
        related = []

    sellers = await load_sellers(db, [listing.get("user_id")])
    data = serialize_listing(listing, sellers.get(listing.get("user_id")))
    data["relatedProducts"] = await _serialize_with_sellers(db, related)

    return ok("Product retrieved successfully", data)


# =========================
# UPDATE / DELETE (OWNER ONLY)
# =========================

@router.put("/{listing_id}")
async def update_listing(
    listing_id: str,
    data: ListingUpdate,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    oid = parse_object_id(listing_id, "product ID")

    listing = await db.listings.find_one({"_id": oid})
    if not listing:
        raise NotFound("Product not found")

    assert_owner(listing, user["_id"], "Access denied. You can only update your own products")

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    for key in ("category", "condition"):
        if key in updates:
            updates[key] = updates[key].value

    if updates:
        updates["updated_at"] = datetime.utcnow()
        await db.listings.update_one({"_id": oid}, {"$set": updates})
        listing.update(updates)

    return ok("Product updated successfully", serialize_listing(listing, user))


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: str,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    oid = parse_object_id(listing_id, "product ID")

    listing = await db.listings.find_one({"_id": oid})
    if not listing:
        raise NotFound("Product not found")

    assert_owner(listing, user["_id"], "Access denied. You can only delete your own products")

    await db.listings.delete_one({"_id": oid})
    logger.info("LISTING_DELETED listing=%s owner=%s", oid, user["_id"])

    return ok(
        "Product deleted successfully",
        {"id": str(oid), "title": listing.get("title")},
    )
