from bson import ObjectId
from bson.errors import InvalidId

from utils.errors import Forbidden, ValidationFailed

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationFailed(f"Invalid {name} format")


# -------------------------------
# Ownership Guard
# -------------------------------

def is_owner(doc: dict, user_id: ObjectId, field: str = "user_id") -> bool:
    return doc.get(field) == user_id


def assert_owner(doc: dict, user_id: ObjectId, message: str, field: str = "user_id"):
    if not is_owner(doc, user_id, field):
        raise Forbidden(message)
