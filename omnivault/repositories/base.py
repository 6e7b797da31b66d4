"""Base repository with shared owner-scoped lookup patterns.

Every user-owned table carries a ``user_id`` column. Subclasses set
model_class and resource_name; the base provides lookups that always filter
by owner, so a row belonging to someone else looks exactly like a row that
does not exist.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session, Query

from ..database import Base
from ..exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:   The SQLAlchemy model (e.g., Folder)
        resource_name: Name used in the NotFound message (e.g., "Folder")
    """

    model_class: Type[ModelT]
    resource_name: str = "Resource"

    def __init__(self, db: Session):
        self.db = db

    def _owned_query(self, owner_id: str) -> Query:
        """Base query restricted to one owner's rows."""
        return self.db.query(self.model_class).filter(self.model_class.user_id == owner_id)

    def get_owned(self, entity_id: str, owner_id: str) -> ModelT:
        """Get an owned entity by id. Raises NotFoundError if missing or foreign."""
        entity = self.get_owned_optional(entity_id, owner_id)
        if entity is None:
            raise NotFoundError(self.resource_name)
        return entity

    def get_owned_optional(self, entity_id: str, owner_id: str) -> Optional[ModelT]:
        """Get an owned entity by id, or None if missing or foreign."""
        return self._owned_query(owner_id).filter(self.model_class.id == entity_id).first()
