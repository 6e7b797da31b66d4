"""Repository for tag CRUD and lenient tag resolution."""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .base import BaseRepository
from ..exceptions import ConflictError
from ..models.content import Tag, content_tags


class TagRepository(BaseRepository[Tag]):
    model_class = Tag
    resource_name = "Tag"

    def create(self, owner_id: str, name: str, color: str) -> Tag:
        tag = Tag(name=name, color=color, user_id=owner_id)
        self.db.add(tag)
        self.flush()
        self.db.refresh(tag)
        return tag

    def list_all(self, owner_id: str) -> List[Tag]:
        return self._owned_query(owner_id).order_by(Tag.name).all()

    def search(self, owner_id: str, pattern: str) -> List[Tag]:
        return (
            self._owned_query(owner_id)
            .filter(Tag.name.ilike(pattern))
            .order_by(Tag.name)
            .all()
        )

    def get_by_name(self, owner_id: str, name: str) -> Optional[Tag]:
        return self._owned_query(owner_id).filter(Tag.name == name).first()

    def get_by_names(self, owner_id: str, names: Iterable[str]) -> List[Tag]:
        names = list(set(names))
        if not names:
            return []
        return self._owned_query(owner_id).filter(Tag.name.in_(names)).order_by(Tag.name).all()

    def get_by_ids(self, owner_id: str, ids: Iterable[str]) -> List[Tag]:
        ids = list(set(ids))
        if not ids:
            return []
        return self._owned_query(owner_id).filter(Tag.id.in_(ids)).order_by(Tag.name).all()

    def content_counts(self, owner_id: str) -> Dict[str, int]:
        """Number of contents carrying each of the owner's tags."""
        rows = (
            self.db.query(content_tags.c.tag_id, func.count(content_tags.c.content_id))
            .join(Tag, Tag.id == content_tags.c.tag_id)
            .filter(Tag.user_id == owner_id)
            .group_by(content_tags.c.tag_id)
            .all()
        )
        return {tag_id: count for tag_id, count in rows}

    def delete(self, tag: Tag) -> None:
        self.db.delete(tag)

    def flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A tag with this name already exists") from e
