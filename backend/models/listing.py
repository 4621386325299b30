import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from config.constants import (
    IMAGE_URL_PATTERN,
    MAX_LISTING_PRICE,
    MAX_TAG_LENGTH,
    MAX_TAGS,
)
from utils.money import round_money


class Category(str, Enum):
    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    FURNITURE = "Furniture"
    BOOKS = "Books"
    MISCELLANEOUS = "Miscellaneous"


class Condition(str, Enum):
    NEW = "New"
    LIKE_NEW = "Like New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class SortField(str, Enum):
    CREATED_AT = "createdAt"
    PRICE = "price"
    TITLE = "title"
    VIEWS = "views"
    UPDATED_AT = "updatedAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return tags
    if len(tags) > MAX_TAGS:
        raise ValueError(f"Maximum {MAX_TAGS} tags allowed")

    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if not tag or len(tag) > MAX_TAG_LENGTH:
            raise ValueError(
                f"Each tag must be a non-empty string with maximum {MAX_TAG_LENGTH} characters"
            )
        cleaned.append(tag.lower())
    return cleaned


class _ListingFields(BaseModel):
    """Shared field rules; subclasses decide which fields are required."""

    @field_validator("title", "description", "location", "image", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("price", check_fields=False)
    @classmethod
    def round_price(cls, value):
        if value is None:
            return value
        return round_money(value)

    @field_validator("image", check_fields=False)
    @classmethod
    def check_image(cls, value):
        if value and not re.match(IMAGE_URL_PATTERN, value):
            raise ValueError("Image must be a valid image URL (jpg, jpeg, png, gif, webp)")
        return value

    @field_validator("tags", check_fields=False)
    @classmethod
    def check_tags(cls, value):
        return normalize_tags(value)


class ListingCreate(_ListingFields):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    category: Category
    price: float = Field(..., ge=0, le=MAX_LISTING_PRICE)
    condition: Condition = Condition.GOOD
    image: str = ""
    location: str = Field("", max_length=100)
    tags: List[str] = []


class ListingUpdate(_ListingFields):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    category: Optional[Category] = None
    price: Optional[float] = Field(None, ge=0, le=MAX_LISTING_PRICE)
    condition: Optional[Condition] = None
    image: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = None
    is_available: Optional[bool] = Field(None, alias="isAvailable")

    model_config = {"populate_by_name": True}
