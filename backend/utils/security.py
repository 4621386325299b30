import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError

from utils.jwt import decode_token
from utils.errors import Unauthorized
from database import get_db

logger = logging.getLogger(__name__)

# auto_error=False so a missing header surfaces as our 401 envelope
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
):
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Access denied. No token provided")

    try:
        payload = decode_token(credentials.credentials)
    except ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except JWTError as e:
        logger.info("JWT_REJECTED reason=%s", e)
        raise Unauthorized("Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Invalid token payload")

    try:
        account_id = ObjectId(subject)
    except (InvalidId, TypeError):
        raise Unauthorized("Invalid token payload")

    user = await db.users.find_one({"_id": account_id})
    if not user:
        raise Unauthorized("Token is valid but user no longer exists")

    return user
