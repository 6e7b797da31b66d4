"""Tag schemas."""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

TAG_NAME_MAX_LENGTH = 50
_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Tag name cannot be empty")
    return v


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not _COLOR_RE.match(v):
        raise ValueError("Color must be a hex code like #1A2B3C")
    return v


class TagCreate(BaseModel):
    name: str = Field(..., max_length=TAG_NAME_MAX_LENGTH)
    color: Optional[str] = None  # None = default grey

    model_config = {
        "json_schema_extra": {"examples": [{"name": "finance", "color": "#2E86DE"}]}
    }

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=TAG_NAME_MAX_LENGTH)
    color: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class TagResponse(BaseModel):
    id: str
    name: str
    color: str
    content_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
