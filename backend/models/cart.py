from pydantic import BaseModel, Field

from config.constants import MAX_CART_QUANTITY


class CartAddItem(BaseModel):
    listing_id: str = Field(..., alias="listingId")
    quantity: int = Field(1, ge=1, le=MAX_CART_QUANTITY)

    model_config = {"populate_by_name": True}


class CartUpdateItem(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_CART_QUANTITY)
