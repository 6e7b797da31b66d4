"""Repository for folder CRUD and folder counts. Every query is owner-scoped."""

from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from .base import BaseRepository
from ..exceptions import ConflictError
from ..models.content import Content
from ..models.folder import Folder


class FolderRepository(BaseRepository[Folder]):
    model_class = Folder
    resource_name = "Folder"

    def create(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> Folder:
        folder = Folder(
            name=name,
            description=description,
            parent_id=parent_id,
            user_id=owner_id,
        )
        self.db.add(folder)
        self._flush_or_conflict()
        self.db.refresh(folder)
        return folder

    def list_roots(self, owner_id: str) -> List[Folder]:
        return (
            self._owned_query(owner_id)
            .filter(Folder.parent_id.is_(None))
            .order_by(Folder.name)
            .all()
        )

    def list_children(self, owner_id: str, parent_id: str) -> List[Folder]:
        return (
            self._owned_query(owner_id)
            .filter(Folder.parent_id == parent_id)
            .order_by(Folder.name)
            .all()
        )

    def list_all(self, owner_id: str) -> List[Folder]:
        return self._owned_query(owner_id).order_by(Folder.name).all()

    def search(self, owner_id: str, pattern: str) -> List[Folder]:
        return (
            self._owned_query(owner_id)
            .filter(or_(Folder.name.ilike(pattern), Folder.description.ilike(pattern)))
            .order_by(Folder.name)
            .all()
        )

    def find_sibling(
        self,
        owner_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Folder]:
        """Folder with exactly *name* under *parent_id* (None = root level)."""
        query = self._owned_query(owner_id).filter(Folder.name == name)
        if parent_id is None:
            query = query.filter(Folder.parent_id.is_(None))
        else:
            query = query.filter(Folder.parent_id == parent_id)
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        return query.first()

    # --- Counts ---

    def count_contents(self, owner_id: str, folder_id: str) -> int:
        return (
            self.db.query(func.count(Content.id))
            .filter(Content.user_id == owner_id, Content.folder_id == folder_id)
            .scalar()
        ) or 0

    def count_subfolders(self, owner_id: str, folder_id: str) -> int:
        return (
            self.db.query(func.count(Folder.id))
            .filter(Folder.user_id == owner_id, Folder.parent_id == folder_id)
            .scalar()
        ) or 0

    def content_counts(self, owner_id: str) -> Dict[str, int]:
        """Direct content count per folder id, one grouped query."""
        rows = (
            self.db.query(Content.folder_id, func.count(Content.id))
            .filter(Content.user_id == owner_id, Content.folder_id.isnot(None))
            .group_by(Content.folder_id)
            .all()
        )
        return {folder_id: count for folder_id, count in rows}

    def subfolder_counts(self, owner_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(Folder.parent_id, func.count(Folder.id))
            .filter(Folder.user_id == owner_id, Folder.parent_id.isnot(None))
            .group_by(Folder.parent_id)
            .all()
        )
        return {parent_id: count for parent_id, count in rows}

    # --- Mutations ---

    def flush(self) -> None:
        self._flush_or_conflict()

    def delete(self, owner_id: str, folder_id: str) -> bool:
        """Delete a folder. Subfolders and their contents go through ON DELETE CASCADE."""
        deleted = (
            self._owned_query(owner_id)
            .filter(Folder.id == folder_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def _flush_or_conflict(self) -> None:
        # The sibling-name check in the service can race; the unique
        # constraint is the backstop.
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A folder with this name already exists here") from e
