from fastapi import APIRouter, Depends, status

from database import get_db
from models.cart import CartAddItem, CartUpdateItem
from utils import cart_service
from utils.guards import parse_object_id
from utils.listings import load_sellers
from utils.responses import ok
from utils.security import get_current_user
from utils.serializers import serialize_cart_entry

router = APIRouter(prefix="/cart", tags=["Cart"])


async def _entry_response(db, entry: dict, listing: dict) -> dict:
    sellers = await load_sellers(db, [listing.get("user_id")])
    item = serialize_cart_entry(entry, listing, sellers.get(listing.get("user_id")))
    return {"cartItem": item, "subtotal": item["subtotal"]}


@router.get("")
async def get_cart(
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    cart = await cart_service.view_cart(db, user["_id"])

    return ok(
        "Cart retrieved successfully",
        {
            "items": [
                serialize_cart_entry(entry, listing, seller)
                for entry, listing, seller in cart["items"]
            ],
            "summary": cart["summary"],
            "removedUnavailableItems": cart["removedUnavailableItems"],
        },
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    data: CartAddItem,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    listing_id = parse_object_id(data.listing_id, "product ID")

    entry, listing = await cart_service.add_to_cart(db, user["_id"], listing_id, data.quantity)

    return ok("Item added to cart successfully", await _entry_response(db, entry, listing))


@router.put("/{entry_id}")
async def update_cart_item(
    entry_id: str,
    data: CartUpdateItem,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    oid = parse_object_id(entry_id, "cart item ID")

    entry, listing = await cart_service.set_quantity(db, user["_id"], oid, data.quantity)

    return ok("Cart item updated successfully", await _entry_response(db, entry, listing))


@router.delete("/{entry_id}")
async def remove_cart_item(
    entry_id: str,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    oid = parse_object_id(entry_id, "cart item ID")

    removed = await cart_service.remove_from_cart(db, user["_id"], oid)

    return ok("Item removed from cart successfully", {"removed": removed})


@router.delete("")
async def clear_cart(
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    deleted = await cart_service.clear_cart(db, user["_id"])

    return ok("Cart cleared successfully", {"deletedCount": deleted})
