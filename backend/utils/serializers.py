from typing import Optional

from utils.mongo import serialize_value
from utils.money import format_money, line_total, round_money


def serialize_seller(user: Optional[dict]) -> Optional[dict]:
    if not user:
        return None
    return {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "avatar": user.get("avatar", ""),
    }


def serialize_account(user: dict, *, public: bool = False) -> dict:
    data = {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "bio": user.get("bio", ""),
        "avatar": user.get("avatar", ""),
        "createdAt": serialize_value(user.get("created_at")),
    }
    if public:
        return data

    data["email"] = user.get("email")
    data["updatedAt"] = serialize_value(user.get("updated_at"))
    return data


def serialize_listing(listing: dict, seller: Optional[dict] = None) -> dict:
    price = listing.get("price", 0)
    return {
        "id": str(listing["_id"]),
        "title": listing.get("title"),
        "description": listing.get("description"),
        "category": listing.get("category"),
        "condition": listing.get("condition"),
        "price": price,
        "formattedPrice": format_money(price),
        "image": listing.get("image", ""),
        "location": listing.get("location", ""),
        "tags": listing.get("tags", []),
        "isAvailable": listing.get("is_available", False),
        "views": listing.get("views", 0),
        "owner": serialize_value(listing.get("user_id")),
        "seller": serialize_seller(seller),
        "createdAt": serialize_value(listing.get("created_at")),
        "updatedAt": serialize_value(listing.get("updated_at")),
    }


def serialize_cart_entry(entry: dict, listing: Optional[dict], seller: Optional[dict] = None) -> dict:
    subtotal = 0.0
    if listing:
        subtotal = round_money(line_total(entry["quantity"], listing.get("price", 0)))

    return {
        "id": str(entry["_id"]),
        "listing": serialize_listing(listing, seller) if listing else None,
        "quantity": entry["quantity"],
        "subtotal": subtotal,
        "addedAt": serialize_value(entry.get("added_at")),
        "updatedAt": serialize_value(entry.get("updated_at")),
    }


def serialize_purchase_line(line: dict) -> dict:
    return {
        "listing": serialize_value(line["listing_id"]),
        "quantity": line["quantity"],
        "priceAtPurchase": line["price_at_purchase"],
        "title": line["title"],
        "image": line.get("image", ""),
        "seller": serialize_value(line["seller_id"]),
    }


def serialize_purchase(purchase: dict) -> dict:
    return {
        "id": str(purchase["_id"]),
        "buyer": serialize_value(purchase["user_id"]),
        "products": [serialize_purchase_line(line) for line in purchase.get("products", [])],
        "total": purchase["total"],
        "formattedTotal": format_money(purchase["total"]),
        "totalItems": purchase.get("total_items", 0),
        "status": purchase.get("status"),
        "notes": purchase.get("notes", ""),
        "purchasedAt": serialize_value(purchase.get("purchased_at")),
    }
