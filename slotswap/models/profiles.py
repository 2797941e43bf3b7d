from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, field_validator


class Profile(BaseModel):
    id: UUID
    name: str
    email: str
    created_at: datetime


class EnsureProfileRequest(BaseModel):
    email: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or len(v) > 320:
            raise ValueError("email must be a valid address")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 100:
            raise ValueError("name must be at most 100 characters")
        return v or None
