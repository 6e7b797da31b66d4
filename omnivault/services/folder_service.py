"""Folder operations: CRUD, move, counts, and tree building.

Every public method takes the owner id first. A folder that belongs to
someone else is reported exactly like a folder that does not exist.
"""

import logging
from collections import deque
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import ConflictError, ValidationError
from ..models.folder import Folder
from ..repositories.folder_repository import FolderRepository
from ..schemas.folder import FolderResponse, FolderTreeNode
from .content_utils import like_pattern

logger = logging.getLogger(__name__)


class FolderService:
    """All folder and tree operations behind a simple interface.

    Public methods:
        list_root_folders -- top-level folders with counts
        list_children     -- direct subfolders of one folder
        get_folder        -- one folder with counts
        get_folder_tree   -- nested tree, whole or rooted at a folder
        create_folder     -- sibling names must be unique
        update_folder     -- rename / change description
        move_folder       -- re-parent, never into its own subtree
        delete_folder     -- cascades to subfolders and their contents
        search_folders    -- case-insensitive name match
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = FolderRepository(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_root_folders(self, owner_id: str) -> List[FolderResponse]:
        return self._with_counts(owner_id, self.repo.list_roots(owner_id))

    def list_children(self, owner_id: str, parent_id: str) -> List[FolderResponse]:
        self.repo.get_owned(parent_id, owner_id)
        return self._with_counts(owner_id, self.repo.list_children(owner_id, parent_id))

    def get_folder(self, owner_id: str, folder_id: str) -> FolderResponse:
        folder = self.repo.get_owned(folder_id, owner_id)
        return self._describe(
            folder,
            content_count=self.repo.count_contents(owner_id, folder.id),
            subfolder_count=self.repo.count_subfolders(owner_id, folder.id),
        )

    def search_folders(self, owner_id: str, term: str) -> List[FolderResponse]:
        return self._with_counts(owner_id, self.repo.search(owner_id, like_pattern(term)))

    def get_folder_tree(self, owner_id: str, root_id: Optional[str] = None) -> List[FolderTreeNode]:
        """Build the folder tree breadth-first over the owner's folder set.

        With *root_id* the result holds a single node for that folder.
        A folder reached twice, or folders unreachable from the roots, mean
        the parent pointers contain a cycle; the request is rejected.
        """
        folders = self.repo.list_all(owner_id)
        content_counts = self.repo.content_counts(owner_id)

        children_by_parent: Dict[Optional[str], List[Folder]] = {}
        for folder in folders:
            children_by_parent.setdefault(folder.parent_id, []).append(folder)

        def make_node(folder: Folder) -> FolderTreeNode:
            return FolderTreeNode(
                **self._describe(
                    folder,
                    content_count=content_counts.get(folder.id, 0),
                    subfolder_count=len(children_by_parent.get(folder.id, [])),
                ).model_dump()
            )

        if root_id is not None:
            starts = [self.repo.get_owned(root_id, owner_id)]
        else:
            starts = children_by_parent.get(None, [])

        roots: List[FolderTreeNode] = []
        visited = set()
        queue = deque()
        for folder in starts:
            node = make_node(folder)
            roots.append(node)
            visited.add(folder.id)
            queue.append((folder, node))

        while queue:
            folder, node = queue.popleft()
            for child in children_by_parent.get(folder.id, []):
                if child.id in visited:
                    self._reject_cycle(owner_id, child.id)
                visited.add(child.id)
                child_node = make_node(child)
                node.children.append(child_node)
                queue.append((child, child_node))

        if root_id is None and len(visited) != len(folders):
            unreachable = next(f.id for f in folders if f.id not in visited)
            self._reject_cycle(owner_id, unreachable)

        return roots

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_folder(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> FolderResponse:
        """Create a folder. Raises ConflictError if a sibling already has *name*."""
        if parent_id is not None:
            self.repo.get_owned(parent_id, owner_id)
        self._ensure_unique_name(owner_id, parent_id, name)

        folder = self.repo.create(owner_id, name, description, parent_id)
        self.db.commit()
        logger.info("Folder created", extra={"folder_id": folder.id, "user_id": owner_id})
        return self._describe(folder)

    def update_folder(
        self,
        owner_id: str,
        folder_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> FolderResponse:
        folder = self.repo.get_owned(folder_id, owner_id)
        if name is not None and name != folder.name:
            self._ensure_unique_name(owner_id, folder.parent_id, name, exclude_id=folder.id)
            folder.name = name
        if description is not None:
            folder.description = description
        self.repo.flush()
        self.db.commit()
        return self.get_folder(owner_id, folder.id)

    def move_folder(self, owner_id: str, folder_id: str, new_parent_id: Optional[str]) -> FolderResponse:
        """Move a folder under *new_parent_id* (or to the root level if None)."""
        folder = self.repo.get_owned(folder_id, owner_id)

        if new_parent_id is not None:
            self.repo.get_owned(new_parent_id, owner_id)
            if self._is_in_subtree(owner_id, folder.id, new_parent_id):
                raise ValidationError("Cannot move a folder into itself or its own subfolder", field="parent_id")

        if new_parent_id != folder.parent_id:
            self._ensure_unique_name(owner_id, new_parent_id, folder.name, exclude_id=folder.id)
            folder.parent_id = new_parent_id
            self.repo.flush()
            self.db.commit()
            logger.info("Folder moved", extra={"folder_id": folder.id, "parent_id": new_parent_id})

        return self.get_folder(owner_id, folder.id)

    def delete_folder(self, owner_id: str, folder_id: str) -> None:
        """Delete a folder together with its subfolders and their contents."""
        self.repo.get_owned(folder_id, owner_id)
        self.repo.delete(owner_id, folder_id)
        self.db.commit()
        logger.info("Folder deleted", extra={"folder_id": folder_id, "user_id": owner_id})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_unique_name(
        self,
        owner_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        if self.repo.find_sibling(owner_id, parent_id, name, exclude_id=exclude_id) is not None:
            raise ConflictError(
                f"A folder named '{name}' already exists here",
                details={"field": "name"},
            )

    def _is_in_subtree(self, owner_id: str, ancestor_id: str, candidate_id: str) -> bool:
        """True if *candidate_id* is *ancestor_id* or lies below it.

        Walks parent pointers upward from the candidate; a pointer loop ends
        the walk instead of spinning forever.
        """
        seen = set()
        current: Optional[str] = candidate_id
        while current is not None and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            folder = self.repo.get_owned_optional(current, owner_id)
            current = folder.parent_id if folder else None
        return False

    def _with_counts(self, owner_id: str, folders: List[Folder]) -> List[FolderResponse]:
        if not folders:
            return []
        content_counts = self.repo.content_counts(owner_id)
        subfolder_counts = self.repo.subfolder_counts(owner_id)
        return [
            self._describe(
                f,
                content_count=content_counts.get(f.id, 0),
                subfolder_count=subfolder_counts.get(f.id, 0),
            )
            for f in folders
        ]

    @staticmethod
    def _describe(folder: Folder, content_count: int = 0, subfolder_count: int = 0) -> FolderResponse:
        return FolderResponse(
            id=folder.id,
            name=folder.name,
            description=folder.description,
            parent_id=folder.parent_id,
            content_count=content_count,
            subfolder_count=subfolder_count,
            created_at=folder.created_at,
            updated_at=folder.updated_at,
        )

    @staticmethod
    def _reject_cycle(owner_id: str, folder_id: str) -> None:
        logger.error(
            "Folder hierarchy contains a cycle",
            extra={"user_id": owner_id, "folder_id": folder_id},
        )
        raise ConflictError("Folder hierarchy is corrupt: a folder is its own ancestor")
