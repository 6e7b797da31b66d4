"""Data access repositories."""

from .base import BaseRepository
from .folder_repository import FolderRepository
from .tag_repository import TagRepository
from .content_repository import ContentRepository
from .session_repository import RefreshTokenRepository, VerificationTokenRepository

__all__ = [
    "BaseRepository",
    "FolderRepository",
    "TagRepository",
    "ContentRepository",
    "RefreshTokenRepository",
    "VerificationTokenRepository",
]
