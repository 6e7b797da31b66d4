"""Folder and folder tree schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

FOLDER_NAME_MAX_LENGTH = 100
FOLDER_DESCRIPTION_MAX_LENGTH = 500


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Folder name cannot be empty")
    return v


class FolderCreate(BaseModel):
    """Create a folder. ``parent_id`` None creates a root folder."""
    name: str = Field(..., max_length=FOLDER_NAME_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=FOLDER_DESCRIPTION_MAX_LENGTH)
    parent_id: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class FolderUpdate(BaseModel):
    """Rename a folder or change its description. Omitted fields are kept."""
    name: Optional[str] = Field(None, max_length=FOLDER_NAME_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=FOLDER_DESCRIPTION_MAX_LENGTH)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class FolderMove(BaseModel):
    """Move a folder to a new parent. ``parent_id`` must be sent; null moves it to the root."""
    parent_id: Optional[str] = Field(...)


class FolderResponse(BaseModel):
    """Folder in API responses, with on-demand counts."""
    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    content_count: int = 0
    subfolder_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FolderTreeNode(FolderResponse):
    """A folder with its nested subfolders."""
    children: List['FolderTreeNode'] = Field(default_factory=list)
