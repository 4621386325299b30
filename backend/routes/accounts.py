import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pymongo.errors import DuplicateKeyError

from database import get_db
from models.user import AccountCreate, ProfileUpdate
from utils.errors import Conflict, NotFound, ValidationFailed
from utils.guards import parse_object_id
from utils.hash import hash_password
from utils.jwt import create_access_token
from utils.responses import ok
from utils.security import get_current_user
from utils.serializers import serialize_account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["Accounts"])

PROFILE_FIELDS = ("username", "email", "bio", "avatar")


def profile_completeness(user: dict) -> int:
    filled = [f for f in PROFILE_FIELDS if str(user.get(f) or "").strip()]
    return round(len(filled) / len(PROFILE_FIELDS) * 100)


# ======================
# Register
# ======================

@router.post("", status_code=status.HTTP_201_CREATED)
async def register(
    data: AccountCreate,
    db=Depends(get_db),
):
    email = data.email.lower()

    if await db.users.find_one({"email": email}):
        raise Conflict("User already exists with this email address")

    try:
        password_hash = hash_password(data.password)
    except ValueError as e:
        raise ValidationFailed(str(e))

    now = datetime.utcnow()
    user = {
        "email": email,
        "username": data.username,
        "bio": "",
        "avatar": "",
        "password_hash": password_hash,
        "created_at": now,
        "updated_at": now,
    }

    try:
        result = await db.users.insert_one(user)
    except DuplicateKeyError:
        raise Conflict("User already exists with this email address")

    user["_id"] = result.inserted_id
    logger.info("ACCOUNT_REGISTERED user=%s", user["_id"])

    return ok(
        "User registered successfully",
        {
            "token": create_access_token(str(user["_id"])),
            "tokenType": "bearer",
            "account": serialize_account(user),
        },
    )


# ======================
# Current account
# ======================

@router.get("/me")
async def get_me(user=Depends(get_current_user)):
    return ok("User profile retrieved successfully", serialize_account(user))


@router.put("/me")
async def update_me(
    data: ProfileUpdate,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    updates = data.model_dump(exclude_unset=True, exclude_none=True)

    new_username = updates.get("username")
    if new_username and new_username != user.get("username"):
        taken = await db.users.find_one({
            "username": new_username,
            "_id": {"$ne": user["_id"]},
        })
        if taken:
            raise Conflict("Username is already taken")

    if updates:
        updates["updated_at"] = datetime.utcnow()
        await db.users.update_one({"_id": user["_id"]}, {"$set": updates})
        user = {**user, **updates}

    return ok("Profile updated successfully", serialize_account(user))


@router.get("/me/stats")
async def get_my_stats(
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    stats = {
        "profileCompleteness": profile_completeness(user),
        "memberSince": user.get("created_at"),
        "lastUpdated": user.get("updated_at"),
        "productsListed": await db.listings.count_documents({"user_id": user["_id"]}),
        "productsAvailable": await db.listings.count_documents(
            {"user_id": user["_id"], "is_available": True}
        ),
        "productsSold": await db.purchases.count_documents({"products.seller_id": user["_id"]}),
        "purchasesMade": await db.purchases.count_documents({"user_id": user["_id"]}),
    }
    for key in ("memberSince", "lastUpdated"):
        if isinstance(stats[key], datetime):
            stats[key] = stats[key].isoformat()

    return ok("User statistics retrieved successfully", stats)


# ======================
# Public profile
# ======================

@router.get("/{account_id}")
async def get_account(
    account_id: str,
    db=Depends(get_db),
):
    oid = parse_object_id(account_id, "user ID")

    user = await db.users.find_one({"_id": oid})
    if not user:
        raise NotFound("User not found")

    return ok("User profile retrieved successfully", serialize_account(user, public=True))
