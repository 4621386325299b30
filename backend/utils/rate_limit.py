from datetime import datetime, timedelta

from pymongo import ReturnDocument

from utils.errors import RateLimited


async def rate_limit(db, key: str, max_requests: int, window_seconds: int):
    """
    Fixed-window counter kept in `rate_limits`, so every worker shares it.
    `key` combines the action and the caller, e.g. "login:<email>".
    Stale windows are reaped by the TTL index on `expires_at`.
    """
    now = datetime.utcnow()
    window = timedelta(seconds=window_seconds)

    # count the hit first, then judge the post-increment value
    record = await db.rate_limits.find_one_and_update(
        {"key": key, "window_start": {"$gt": now - window}},
        {"$inc": {"count": 1}},
        return_document=ReturnDocument.AFTER,
    )

    if record is None:
        # first hit, or the previous window has lapsed
        await db.rate_limits.update_one(
            {"key": key},
            {"$set": {"count": 1, "window_start": now, "expires_at": now + window}},
            upsert=True,
        )
        return

    if record["count"] > max_requests:
        raise RateLimited("Too many attempts. Please try again later.")
