from typing import Any, Optional

from fastapi import HTTPException, status


class ApiError(HTTPException):
    """
    HTTPException carrying the envelope fields of an error response.

    `errors` is rendered as-is under the "errors" key, `extra` is merged
    into the top-level body.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        errors: Optional[list] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.errors = errors
        self.extra = extra or {}
        super().__init__(status_code=type(self).status_code, detail=self.message)


class ValidationFailed(ApiError):
    default_message = "Validation failed"


class Conflict(ApiError):
    default_message = "Resource already exists"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class RateLimited(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please slow down."


class Internal(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


# -------------------------------
# Cart / checkout outcomes
# -------------------------------

class Unavailable(ApiError):
    default_message = "Product is no longer available"


class SelfPurchase(ApiError):
    default_message = "You cannot add your own product to cart"


class EmptyCart(ApiError):
    default_message = "Cannot create purchase from empty cart"


class NoValidItems(ApiError):
    default_message = "No valid items in cart to purchase"

    def __init__(self, removed_items: list, message: Optional[str] = None):
        self.removed_items = removed_items
        super().__init__(message, extra={"removedUnavailableItems": removed_items})
