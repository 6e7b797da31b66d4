"""Database models."""

from .user import User, RefreshToken, VerificationToken, EMAIL_VERIFICATION
from .folder import Folder
from .content import Content, ContentType, TextContent, LinkContent, Tag, content_tags, DEFAULT_TAG_COLOR

__all__ = [
    "User", "RefreshToken", "VerificationToken", "EMAIL_VERIFICATION",
    "Folder",
    "Content", "ContentType", "TextContent", "LinkContent",
    "Tag", "content_tags", "DEFAULT_TAG_COLOR",
]
