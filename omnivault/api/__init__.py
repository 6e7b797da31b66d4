"""API routes."""

from .auth_routes import router as auth_router
from .folders import router as folders_router
from .tags import router as tags_router
from .contents import router as contents_router

__all__ = [
    "auth_router",
    "folders_router",
    "tags_router",
    "contents_router",
]
