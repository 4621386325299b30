from datetime import datetime

from bson import ObjectId


def serialize_value(value):
    """ObjectId -> str, datetime -> ISO string; anything else passes through."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value
