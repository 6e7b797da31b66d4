"""Business logic services."""

from .folder_service import FolderService
from .tag_service import TagService
from .content_service import ContentService
from .session_store import SessionStore

__all__ = ["FolderService", "TagService", "ContentService", "SessionStore"]
