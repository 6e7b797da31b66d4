"""Pydantic schemas for API validation."""

from .folder import (
    FolderCreate,
    FolderUpdate,
    FolderMove,
    FolderResponse,
    FolderTreeNode,
)
from .tag import (
    TagCreate,
    TagUpdate,
    TagResponse,
)
from .content import (
    TextContentCreate,
    LinkContentCreate,
    FileContentCreate,
    ContentUpdate,
    ContentTagsUpdate,
    ContentResponse,
    ContentPage,
)

__all__ = [
    "FolderCreate",
    "FolderUpdate",
    "FolderMove",
    "FolderResponse",
    "FolderTreeNode",
    "TagCreate",
    "TagUpdate",
    "TagResponse",
    "TextContentCreate",
    "LinkContentCreate",
    "FileContentCreate",
    "ContentUpdate",
    "ContentTagsUpdate",
    "ContentResponse",
    "ContentPage",
]
