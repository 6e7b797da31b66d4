"""Content API: create, read, update, tag, list and search.

Listing endpoints are paginated with a zero-based ``page`` and a ``size``
capped at 100.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..models.content import ContentType
from ..schemas.content import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ContentPage,
    ContentResponse,
    ContentTagsUpdate,
    ContentUpdate,
    FileContentCreate,
    LinkContentCreate,
    TextContentCreate,
)
from ..services.content_service import ContentService

router = APIRouter(prefix="/api/contents", tags=["contents"])


class PageParams:
    """Shared ``page``/``size`` query parameters."""

    def __init__(
        self,
        page: int = Query(0, ge=0, description="Zero-based page index"),
        size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ):
        self.page = page
        self.size = size


# -- Listing --------------------------------------------------------------

@router.get("", response_model=ContentPage)
def list_contents(
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).list_contents(auth.user_id, paging.page, paging.size)


@router.get("/recent", response_model=ContentPage)
def recent_contents(
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Newest first."""
    return ContentService(db).recent_contents(auth.user_id, paging.page, paging.size)


@router.get("/popular", response_model=List[ContentResponse])
def popular_contents(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """The five most viewed items."""
    return ContentService(db).popular_contents(auth.user_id)


@router.get("/favorites", response_model=ContentPage)
def list_favorites(
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).list_favorites(auth.user_id, paging.page, paging.size)


@router.get("/search", response_model=ContentPage)
def search_content(
    q: str = Query("", max_length=200),
    mode: str = Query("basic", pattern="^(basic|full)$"),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Substring search. ``mode=full`` also searches text bodies and URLs."""
    return ContentService(db).search_content(auth.user_id, q, mode, paging.page, paging.size)


@router.get("/folder/{folder_id}", response_model=ContentPage)
def list_by_folder(
    folder_id: str,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).list_by_folder(auth.user_id, folder_id, paging.page, paging.size)


@router.get("/type/{content_type}", response_model=ContentPage)
def list_by_type(
    content_type: ContentType,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).list_by_type(auth.user_id, content_type, paging.page, paging.size)


@router.get("/tag/{tag_id}", response_model=ContentPage)
def list_by_tag(
    tag_id: str,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).list_by_tag(auth.user_id, tag_id, paging.page, paging.size)


@router.get("/{content_id}", response_model=ContentResponse)
def get_content(
    content_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Fetch one item. Each call counts as a view."""
    return ContentService(db).get_content(auth.user_id, content_id)


# -- Create ---------------------------------------------------------------

@router.post("/text", response_model=ContentResponse, status_code=201)
def create_text_content(
    data: TextContentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).create_text_content(auth.user_id, data)


@router.post("/link", response_model=ContentResponse, status_code=201)
def create_link_content(
    data: LinkContentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).create_link_content(auth.user_id, data)


@router.post("/file", response_model=ContentResponse, status_code=201)
def create_file_content(
    data: FileContentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Register a file already written to blob storage."""
    return ContentService(db).create_file_content(auth.user_id, data)


# -- Update / delete ------------------------------------------------------

@router.put("/{content_id}", response_model=ContentResponse)
def update_content(
    content_id: str,
    data: ContentUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Partial update. Pass ``expected_version`` to get 409 on concurrent edits."""
    return ContentService(db).update_content(auth.user_id, content_id, data)


@router.put("/{content_id}/favorite", response_model=ContentResponse)
def toggle_favorite(
    content_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).toggle_favorite(auth.user_id, content_id)


@router.put("/{content_id}/tags", response_model=ContentResponse)
def update_content_tags(
    content_id: str,
    data: ContentTagsUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ContentService(db).update_content_tags(auth.user_id, content_id, data)


@router.delete("/{content_id}", status_code=204)
def delete_content(
    content_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    ContentService(db).delete_content(auth.user_id, content_id)
    return Response(status_code=204)
