from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from app.core.validation import is_valid_email

NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 254
MESSAGE_MAX_LENGTH = 5000

_MAX_LENGTHS = {
    "name": NAME_MAX_LENGTH,
    "email": EMAIL_MAX_LENGTH,
    "message": MESSAGE_MAX_LENGTH,
}


def utf16_length(value: str) -> int:
    """Length as a browser counts it: characters outside the BMP count twice."""
    return len(value.encode("utf-16-le")) // 2


class ContactPayload(BaseModel):
    """Validated contact submission. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: StrictStr
    email: StrictStr
    message: StrictStr
    turnstile_token: Optional[StrictStr] = Field(None, alias="turnstileToken")

    @field_validator("name", "email", "message")
    @classmethod
    def within_length(cls, v: str, info) -> str:
        limit = _MAX_LENGTHS[info.field_name]
        if utf16_length(v) > limit:
            raise ValueError(f"must be at most {limit} characters")
        return v

    @field_validator("name", "message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        if not is_valid_email(v):
            raise ValueError("invalid email address")
        return v.strip()


class ContactResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    reference_id: Optional[str] = Field(None, serialization_alias="referenceId")
