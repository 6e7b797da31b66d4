"""Folder API: CRUD, move, delete, children, search and tree.

Single router for all folder operations. Delegates to FolderService, passing
the caller's id as the owner of every query.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.folder import (
    FolderCreate,
    FolderMove,
    FolderResponse,
    FolderTreeNode,
    FolderUpdate,
)
from ..services.folder_service import FolderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])


# -- Listing and tree -----------------------------------------------------

@router.get("", response_model=List[FolderResponse])
def list_root_folders(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Top-level folders of the caller, ordered by name."""
    return FolderService(db).list_root_folders(auth.user_id)


@router.get("/tree", response_model=List[FolderTreeNode])
def get_tree(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Full nested folder tree of the caller."""
    return FolderService(db).get_folder_tree(auth.user_id)


@router.get("/search", response_model=List[FolderResponse])
def search_folders(
    q: str = Query("", max_length=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return FolderService(db).search_folders(auth.user_id, q)


@router.get("/{folder_id}", response_model=FolderResponse)
def get_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return FolderService(db).get_folder(auth.user_id, folder_id)


@router.get("/{folder_id}/children", response_model=List[FolderResponse])
def list_children(
    folder_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return FolderService(db).list_children(auth.user_id, folder_id)


@router.get("/{folder_id}/tree", response_model=FolderTreeNode)
def get_subtree(
    folder_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Nested tree rooted at one folder."""
    return FolderService(db).get_folder_tree(auth.user_id, root_id=folder_id)[0]


# -- Mutations ------------------------------------------------------------

@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Create a folder. Sibling names must be unique (409 otherwise)."""
    return FolderService(db).create_folder(
        auth.user_id, data.name, description=data.description, parent_id=data.parent_id
    )


@router.put("/{folder_id}", response_model=FolderResponse)
def update_folder(
    folder_id: str,
    data: FolderUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return FolderService(db).update_folder(
        auth.user_id, folder_id, name=data.name, description=data.description
    )


@router.put("/{folder_id}/move", response_model=FolderResponse)
def move_folder(
    folder_id: str,
    data: FolderMove,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Re-parent a folder. Moving into its own subtree is rejected with 400."""
    return FolderService(db).move_folder(auth.user_id, folder_id, data.parent_id)


@router.delete("/{folder_id}", status_code=204)
def delete_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Delete a folder with all its subfolders and contents."""
    FolderService(db).delete_folder(auth.user_id, folder_id)
    return Response(status_code=204)
