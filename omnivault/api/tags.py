"""Tag API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.tag import TagCreate, TagResponse, TagUpdate
from ..services.tag_service import TagService

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("", response_model=List[TagResponse])
def list_tags(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """All tags of the caller with the number of contents carrying each."""
    return TagService(db).list_tags(auth.user_id)


@router.get("/search", response_model=List[TagResponse])
def search_tags(
    q: str = Query("", max_length=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return TagService(db).search_tags(auth.user_id, q)


@router.get("/{tag_id}", response_model=TagResponse)
def get_tag(
    tag_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return TagService(db).get_tag(auth.user_id, tag_id)


@router.post("", response_model=TagResponse, status_code=201)
def create_tag(
    data: TagCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return TagService(db).create_tag(auth.user_id, data.name, data.color)


@router.put("/{tag_id}", response_model=TagResponse)
def update_tag(
    tag_id: str,
    data: TagUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return TagService(db).update_tag(auth.user_id, tag_id, name=data.name, color=data.color)


@router.delete("/{tag_id}", status_code=204)
def delete_tag(
    tag_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    TagService(db).delete_tag(auth.user_id, tag_id)
    return Response(status_code=204)
