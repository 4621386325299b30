import logging
from datetime import datetime

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from config.constants import MAX_CART_QUANTITY
from utils.errors import Forbidden, NotFound, SelfPurchase, Unavailable
from utils.listings import load_listings, load_sellers
from utils.money import format_money, line_total, round_money

logger = logging.getLogger(__name__)


# ==============================
# Helpers
# ==============================

def is_purchasable(listing) -> bool:
    return bool(listing) and bool(listing.get("is_available"))


async def get_owned_entry(db, user_id: ObjectId, entry_id: ObjectId, action: str) -> dict:
    entry = await db.cart_items.find_one({"_id": entry_id})
    if not entry:
        raise NotFound("Cart item not found")

    if entry["user_id"] != user_id:
        raise Forbidden(f"You can only {action} your own cart items")

    return entry


async def load_user_cart(db, user_id: ObjectId) -> list:
    cursor = db.cart_items.find({"user_id": user_id}).sort("added_at", DESCENDING)
    return [entry async for entry in cursor]


# ==============================
# Add
# ==============================

async def add_to_cart(db, user_id: ObjectId, listing_id: ObjectId, quantity: int = 1) -> tuple[dict, dict]:
    listing = await db.listings.find_one({"_id": listing_id})
    if not listing:
        raise NotFound("Product not found")

    if not listing.get("is_available"):
        raise Unavailable()

    if listing.get("user_id") == user_id:
        raise SelfPurchase()

    now = datetime.utcnow()
    existing = await db.cart_items.find_one({"user_id": user_id, "listing_id": listing_id})

    if existing is None:
        entry = {
            "user_id": user_id,
            "listing_id": listing_id,
            "quantity": min(quantity, MAX_CART_QUANTITY),
            "added_at": now,
            "updated_at": now,
        }
        try:
            result = await db.cart_items.insert_one(entry)
            entry["_id"] = result.inserted_id
            return entry, listing
        except DuplicateKeyError:
            # another request inserted the same pair first
            existing = await db.cart_items.find_one({"user_id": user_id, "listing_id": listing_id})
            if existing is None:
                raise

    # increment and clamp in one write
    entry = await db.cart_items.find_one_and_update(
        {"_id": existing["_id"]},
        [{"$set": {
            "quantity": {"$min": [{"$add": ["$quantity", quantity]}, MAX_CART_QUANTITY]},
            "updated_at": now,
        }}],
        return_document=ReturnDocument.AFTER,
    )
    return entry, listing


# ==============================
# Update / remove / clear
# ==============================

async def set_quantity(db, user_id: ObjectId, entry_id: ObjectId, quantity: int) -> tuple[dict, dict]:
    entry = await get_owned_entry(db, user_id, entry_id, "update")

    listing = await db.listings.find_one({"_id": entry["listing_id"]})
    if not is_purchasable(listing):
        await db.cart_items.delete_one({"_id": entry["_id"]})
        logger.info("CART_ENTRY_DROPPED entry=%s reason=unavailable", entry["_id"])
        raise Unavailable("Product is no longer available and has been removed from cart")

    now = datetime.utcnow()
    await db.cart_items.update_one(
        {"_id": entry["_id"]},
        {"$set": {"quantity": quantity, "updated_at": now}},
    )
    entry.update({"quantity": quantity, "updated_at": now})
    return entry, listing


async def remove_from_cart(db, user_id: ObjectId, entry_id: ObjectId) -> bool:
    """Delete an owned entry. An already-missing entry is not an error; returns whether anything was deleted."""
    entry = await db.cart_items.find_one({"_id": entry_id})
    if entry is None:
        return False

    if entry["user_id"] != user_id:
        raise Forbidden("You can only remove your own cart items")

    result = await db.cart_items.delete_one({"_id": entry_id})
    return result.deleted_count == 1


async def clear_cart(db, user_id: ObjectId) -> int:
    result = await db.cart_items.delete_many({"user_id": user_id})
    return result.deleted_count


# ==============================
# View (with lazy cleanup)
# ==============================

async def view_cart(db, user_id: ObjectId) -> dict:
    """
    Resolve the buyer's cart against current listings.

    Entries whose listing is gone or unavailable are deleted and only
    reported by count.
    """
    entries = await load_user_cart(db, user_id)
    listings = await load_listings(db, (e["listing_id"] for e in entries))

    available = []
    stale_ids = []
    for entry in entries:
        listing = listings.get(entry["listing_id"])
        if is_purchasable(listing):
            available.append((entry, listing))
        else:
            stale_ids.append(entry["_id"])

    if stale_ids:
        await db.cart_items.delete_many({"_id": {"$in": stale_ids}})
        logger.info("CART_STALE_ENTRIES_REMOVED user=%s count=%s", user_id, len(stale_ids))

    sellers = await load_sellers(db, (listing.get("user_id") for _, listing in available))

    total = sum(
        (line_total(entry["quantity"], listing["price"]) for entry, listing in available),
        0,
    )
    total = round_money(total)

    return {
        "items": [
            (entry, listing, sellers.get(listing.get("user_id")))
            for entry, listing in available
        ],
        "summary": {
            "itemCount": sum(entry["quantity"] for entry, _ in available),
            "total": total,
            "formattedTotal": format_money(total),
        },
        "removedUnavailableItems": len(stale_ids),
    }
