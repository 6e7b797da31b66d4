"""Tag service: CRUD plus lenient resolution of tag names and ids.

Resolution never fails on unknown input. Names or ids that do not exist, or
that belong to another user, are dropped from the result.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import ConflictError, ValidationError
from ..models.content import Tag, DEFAULT_TAG_COLOR
from ..repositories.tag_repository import TagRepository
from ..schemas.tag import TAG_NAME_MAX_LENGTH, TagResponse
from .content_utils import like_pattern

logger = logging.getLogger(__name__)


class TagService:

    def __init__(self, db: Session):
        self.db = db
        self.repo = TagRepository(db)

    def list_tags(self, owner_id: str) -> List[TagResponse]:
        return self._with_counts(owner_id, self.repo.list_all(owner_id))

    def search_tags(self, owner_id: str, term: str) -> List[TagResponse]:
        return self._with_counts(owner_id, self.repo.search(owner_id, like_pattern(term)))

    def get_tag(self, owner_id: str, tag_id: str) -> TagResponse:
        tag = self.repo.get_owned(tag_id, owner_id)
        return self._with_counts(owner_id, [tag])[0]

    def create_tag(self, owner_id: str, name: str, color: Optional[str] = None) -> TagResponse:
        """Create a tag. Raises ConflictError if the owner already has one with *name*."""
        self._ensure_unique_name(owner_id, name)
        tag = self.repo.create(owner_id, name, color or DEFAULT_TAG_COLOR)
        self.db.commit()
        logger.info("Tag created", extra={"tag_id": tag.id, "user_id": owner_id})
        return TagResponse.model_validate(tag)

    def update_tag(
        self,
        owner_id: str,
        tag_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> TagResponse:
        tag = self.repo.get_owned(tag_id, owner_id)
        if name is not None and name != tag.name:
            self._ensure_unique_name(owner_id, name)
            tag.name = name
        if color is not None:
            tag.color = color
        self.repo.flush()
        self.db.commit()
        return self.get_tag(owner_id, tag.id)

    def delete_tag(self, owner_id: str, tag_id: str) -> None:
        """Delete a tag. Contents keep existing; only the association goes."""
        tag = self.repo.get_owned(tag_id, owner_id)
        self.repo.delete(tag)
        self.db.commit()
        logger.info("Tag deleted", extra={"tag_id": tag_id, "user_id": owner_id})

    # --- Resolution ---

    def resolve_tags_by_names(self, owner_id: str, names: Iterable[str]) -> List[Tag]:
        return self.repo.get_by_names(owner_id, _clean_names(names))

    def resolve_tags_by_ids(self, owner_id: str, ids: Iterable[str]) -> List[Tag]:
        return self.repo.get_by_ids(owner_id, ids)

    def find_or_create_tags(self, owner_id: str, names: Iterable[str]) -> List[Tag]:
        """Resolve *names*, creating the missing ones with the default color.

        Does not commit; the caller's transaction covers the new tags.
        """
        wanted = _clean_names(names)
        if any(len(name) > TAG_NAME_MAX_LENGTH for name in wanted):
            raise ValidationError(
                f"Tag names must be at most {TAG_NAME_MAX_LENGTH} characters", field="tag_names"
            )
        found = {tag.name: tag for tag in self.repo.get_by_names(owner_id, wanted)}
        for name in wanted:
            if name not in found:
                found[name] = self.repo.create(owner_id, name, DEFAULT_TAG_COLOR)
        return sorted(found.values(), key=lambda t: t.name)

    # --- Helpers ---

    def _ensure_unique_name(self, owner_id: str, name: str) -> None:
        if self.repo.get_by_name(owner_id, name) is not None:
            raise ConflictError(f"Tag '{name}' already exists", details={"field": "name"})

    def _with_counts(self, owner_id: str, tags: List[Tag]) -> List[TagResponse]:
        counts = self.repo.content_counts(owner_id) if tags else {}
        return [
            TagResponse(
                id=t.id,
                name=t.name,
                color=t.color,
                content_count=counts.get(t.id, 0),
                created_at=t.created_at,
            )
            for t in tags
        ]


def _clean_names(names: Iterable[str]) -> List[str]:
    """Strip, drop blanks and duplicates, keep first-seen order."""
    seen = []
    for name in names or []:
        name = (name or "").strip()
        if name and name not in seen:
            seen.append(name)
    return seen
