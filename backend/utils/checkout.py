import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from models.purchase import PurchaseStatus
from utils.cart_service import load_user_cart
from utils.errors import EmptyCart, NoValidItems
from utils.listings import load_listings
from utils.money import format_money, sum_lines

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = "Product not found"
REASON_UNAVAILABLE = "Product no longer available"
REASON_OWN_PRODUCT = "Cannot purchase your own product"


# ==============================
# Partition
# ==============================

def invalid_reason(listing: Optional[dict], buyer_id: ObjectId) -> Optional[str]:
    if not listing:
        return REASON_NOT_FOUND
    if not listing.get("is_available"):
        return REASON_UNAVAILABLE
    if listing.get("user_id") == buyer_id:
        return REASON_OWN_PRODUCT
    return None


def partition_cart(entries: list, listings: dict, buyer_id: ObjectId):
    """Split cart entries into purchasable (entry, listing) pairs and dropped-item reports."""
    valid = []
    dropped = []

    for entry in entries:
        listing = listings.get(entry["listing_id"])
        reason = invalid_reason(listing, buyer_id)

        if reason is None:
            valid.append((entry, listing))
            continue

        report = {"cartItemId": str(entry["_id"]), "reason": reason}
        if listing:
            report["productTitle"] = listing.get("title")
        dropped.append((entry["_id"], report))

    return valid, dropped


# ==============================
# Snapshot + invariant
# ==============================

def snapshot_line(entry: dict, listing: dict) -> dict:
    return {
        "listing_id": listing["_id"],
        "quantity": entry["quantity"],
        "price_at_purchase": listing["price"],
        "title": listing["title"],
        "image": listing.get("image", ""),
        "seller_id": listing["user_id"],
    }


def recompute_totals(purchase: dict) -> dict:
    """Force `total` and `total_items` to agree with the snapshot lines."""
    lines = purchase.get("products", [])
    purchase["total"] = sum_lines(lines, "price_at_purchase")
    purchase["total_items"] = sum(int(line["quantity"]) for line in lines)
    return purchase


async def persist_purchase(db, purchase: dict) -> dict:
    recompute_totals(purchase)
    result = await db.purchases.insert_one(purchase)
    purchase["_id"] = result.inserted_id
    return purchase


def sellers_count(purchase: dict) -> int:
    return len({line["seller_id"] for line in purchase.get("products", [])})


def purchase_summary(purchase: dict) -> dict:
    purchased_at = purchase.get("purchased_at")
    return {
        "purchaseId": str(purchase["_id"]),
        "totalItems": purchase.get("total_items", 0),
        "total": purchase["total"],
        "formattedTotal": format_money(purchase["total"]),
        "sellersCount": sellers_count(purchase),
        "status": purchase.get("status"),
        "purchasedAt": purchased_at.isoformat() if isinstance(purchased_at, datetime) else purchased_at,
    }


# ==============================
# Checkout
# ==============================

async def checkout(db, buyer_id: ObjectId, notes: Optional[str] = None) -> dict:
    """
    Convert the buyer's cart into a completed purchase.

    Invalid entries are deleted before anything else is decided, so even a
    failed checkout leaves no stale entries behind. The purchase insert and
    the cart clear are separate writes; a crash between them leaves the cart
    populated next to a completed purchase.
    """
    entries = await load_user_cart(db, buyer_id)
    if not entries:
        raise EmptyCart()

    listings = await load_listings(db, (e["listing_id"] for e in entries))
    valid, dropped = partition_cart(entries, listings, buyer_id)

    removed_items = [report for _, report in dropped]
    if dropped:
        await db.cart_items.delete_many({"_id": {"$in": [entry_id for entry_id, _ in dropped]}})
        logger.info("CHECKOUT_DROPPED_ITEMS buyer=%s count=%s", buyer_id, len(dropped))

    if not valid:
        raise NoValidItems(removed_items)

    purchase = {
        "user_id": buyer_id,
        "products": [snapshot_line(entry, listing) for entry, listing in valid],
        "status": PurchaseStatus.COMPLETED.value,
        "notes": notes or "",
        "purchased_at": datetime.utcnow(),
    }
    purchase = await persist_purchase(db, purchase)

    try:
        await db.cart_items.delete_many({"user_id": buyer_id})
    except PyMongoError:
        # purchase is already committed
        logger.exception("CART_CLEAR_ERROR buyer=%s purchase=%s", buyer_id, purchase["_id"])

    logger.info(
        "CHECKOUT_COMPLETED buyer=%s purchase=%s total=%s",
        buyer_id, purchase["_id"], purchase["total"],
    )

    return {
        "purchase": purchase,
        "summary": purchase_summary(purchase),
        "removedUnavailableItems": removed_items or None,
    }
