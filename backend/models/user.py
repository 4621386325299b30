import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from config.constants import IMAGE_URL_PATTERN

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"

# at least one lower-case letter, one upper-case letter and one digit
PASSWORD_STRENGTH = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _validate_avatar(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if value and not re.match(IMAGE_URL_PATTERN, value):
        raise ValueError("Avatar must be a valid image URL (jpg, jpeg, png, gif, webp)")
    return value


class AccountCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def check_strength(cls, value: str) -> str:
        if not PASSWORD_STRENGTH.match(value):
            raise ValueError(
                "Password must contain at least one lowercase letter, "
                "one uppercase letter, and one number"
            )
        return value


class SessionCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None

    @field_validator("username", "bio", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value):
        return _validate_avatar(value)
