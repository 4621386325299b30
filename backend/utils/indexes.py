import logging

from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            logger.warning("INDEX_REPLACED collection=%s index=%s", collection.name, idx_name)
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Users
    await _create_index_safe(
        db.users,
        [("email", ASCENDING)],
        name="users_email_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.users,
        [("username", ASCENDING)],
        name="users_username_idx",
    )

    # Listings
    await _create_index_safe(
        db.listings,
        [("title", TEXT), ("description", TEXT), ("tags", TEXT)],
        name="listings_text_idx",
    )
    await _create_index_safe(
        db.listings,
        [("is_available", ASCENDING), ("created_at", DESCENDING)],
        name="listings_available_created_idx",
    )
    await _create_index_safe(
        db.listings,
        [("is_available", ASCENDING), ("category", ASCENDING), ("price", ASCENDING)],
        name="listings_available_category_price_idx",
    )
    await _create_index_safe(
        db.listings,
        [("user_id", ASCENDING), ("created_at", DESCENDING)],
        name="listings_owner_created_idx",
    )
    await _create_index_safe(
        db.listings,
        [("category", ASCENDING), ("condition", ASCENDING)],
        name="listings_category_condition_idx",
    )

    # Cart
    await _create_index_safe(
        db.cart_items,
        [("user_id", ASCENDING), ("listing_id", ASCENDING)],
        name="cart_items_user_listing_unique",
        unique=True,
    )
    await _create_index_safe(
        db.cart_items,
        [("user_id", ASCENDING), ("added_at", DESCENDING)],
        name="cart_items_user_added_idx",
    )

    # Login throttling
    await _create_index_safe(
        db.rate_limits,
        [("key", ASCENDING)],
        name="rate_limits_key_unique",
        unique=True,
    )
    await _create_index_safe(
        db.rate_limits,
        [("expires_at", ASCENDING)],
        name="rate_limits_expires_ttl_idx",
        expireAfterSeconds=0,
    )

    # Purchases
    await _create_index_safe(
        db.purchases,
        [("user_id", ASCENDING), ("purchased_at", DESCENDING)],
        name="purchases_user_purchased_at_idx",
    )
    await _create_index_safe(
        db.purchases,
        [("products.seller_id", ASCENDING)],
        name="purchases_seller_idx",
    )
    await _create_index_safe(
        db.purchases,
        [("status", ASCENDING)],
        name="purchases_status_idx",
    )
