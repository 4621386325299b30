from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from config.constants import MAX_NOTES_LENGTH


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PurchaseCreate(BaseModel):
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def strip_notes(cls, value):
        return value.strip() if isinstance(value, str) else value
