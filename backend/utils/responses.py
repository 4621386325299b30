from typing import Any


def ok(message: str, data: Any = None, **extra) -> dict:
    body = {"success": True, "message": message, "data": data}
    body.update(extra)
    return body
