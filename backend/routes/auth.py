import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from config.constants import LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_SECONDS
from database import get_db
from models.user import SessionCreate
from utils.errors import Unauthorized
from utils.hash import hash_password, needs_rehash, verify_password
from utils.jwt import create_access_token
from utils.rate_limit import rate_limit
from utils.responses import ok
from utils.security import get_current_user
from utils.serializers import serialize_account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Auth"])


# ======================
# Login
# ======================

@router.post("")
async def login(
    data: SessionCreate,
    db=Depends(get_db),
):
    email = data.email.lower()

    await rate_limit(
        db,
        key=f"login:{email}",
        max_requests=LOGIN_MAX_ATTEMPTS,
        window_seconds=LOGIN_WINDOW_SECONDS,
    )

    user = await db.users.find_one({"email": email})
    if not user or not verify_password(data.password, user.get("password_hash")):
        logger.info("LOGIN_FAILED email=%s", email)
        raise Unauthorized("Invalid email or password")

    updates = {"last_login_at": datetime.utcnow()}
    if needs_rehash(user["password_hash"]):
        updates["password_hash"] = hash_password(data.password)
        logger.info("PASSWORD_REHASHED user=%s", user["_id"])

    await db.users.update_one({"_id": user["_id"]}, {"$set": updates})

    return ok(
        "Login successful",
        {
            "token": create_access_token(str(user["_id"])),
            "tokenType": "bearer",
            "account": serialize_account(user),
        },
    )


# ======================
# Logout
# ======================

@router.delete("")
async def logout(user=Depends(get_current_user)):
    # tokens are stateless; the client discards its copy
    return ok(
        "User logged out successfully",
        {"hint": "Please remove the token from client-side storage"},
    )
