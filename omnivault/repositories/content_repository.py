"""Repository for content records and their text/link satellites.

All list queries are owner-scoped and paginated; callers never get an
unbounded scan.
"""

from typing import List, Tuple

from sqlalchemy import or_, text
from sqlalchemy.orm import Query

from .base import BaseRepository
from ..models.content import Content, ContentType, LinkContent, TextContent, content_tags

POPULAR_LIMIT = 5


class ContentRepository(BaseRepository[Content]):
    model_class = Content
    resource_name = "Content"

    def add(self, content: Content) -> Content:
        self.db.add(content)
        self.db.flush()
        self.db.refresh(content)
        return content

    # --- Queries ---

    def paginate(self, query: Query, page: int, size: int) -> Tuple[List[Content], int]:
        """Return ``(items, total)`` for zero-based *page*."""
        total = query.order_by(None).count()
        items = query.offset(page * size).limit(size).all()
        return items, total

    def all_query(self, owner_id: str) -> Query:
        return self._owned_query(owner_id).order_by(Content.created_at.desc(), Content.id)

    def by_folder_query(self, owner_id: str, folder_id: str) -> Query:
        return self.all_query(owner_id).filter(Content.folder_id == folder_id)

    def by_type_query(self, owner_id: str, content_type: ContentType) -> Query:
        return self.all_query(owner_id).filter(Content.content_type == content_type)

    def by_tag_query(self, owner_id: str, tag_id: str) -> Query:
        return (
            self.all_query(owner_id)
            .join(content_tags, content_tags.c.content_id == Content.id)
            .filter(content_tags.c.tag_id == tag_id)
        )

    def favorites_query(self, owner_id: str) -> Query:
        return self.all_query(owner_id).filter(Content.is_favorite.is_(True))

    def search_query(self, owner_id: str, pattern: str, full: bool = False) -> Query:
        """Case-insensitive substring search.

        Basic mode matches title and description. Full mode also matches the
        text body and the URL through outer joins on the satellite tables.
        """
        query = self.all_query(owner_id)
        conditions = [Content.title.ilike(pattern), Content.description.ilike(pattern)]
        if full:
            query = (
                query
                .outerjoin(TextContent, TextContent.content_id == Content.id)
                .outerjoin(LinkContent, LinkContent.content_id == Content.id)
            )
            conditions += [TextContent.text_content.ilike(pattern), LinkContent.url.ilike(pattern)]
        return query.filter(or_(*conditions))

    def most_viewed(self, owner_id: str, limit: int = POPULAR_LIMIT) -> List[Content]:
        return (
            self._owned_query(owner_id)
            .order_by(Content.view_count.desc(), Content.created_at.desc())
            .limit(limit)
            .all()
        )

    # --- Mutations ---

    def increment_view_count(self, owner_id: str, content_id: str) -> None:
        """Atomic ``view_count + 1``; leaves ``updated_at`` alone."""
        (
            self._owned_query(owner_id)
            .filter(Content.id == content_id)
            .update(
                {
                    Content.view_count: Content.view_count + 1,
                    Content.updated_at: Content.updated_at,
                },
                synchronize_session=False,
            )
        )

    def claim_version(self, owner_id: str, content_id: str, expected_version: int) -> bool:
        """Bump the version only if it still equals *expected_version*.

        Check and write happen in one statement; a concurrent writer that got
        there first leaves ``rowcount == 0``.
        """
        result = self.db.execute(
            text(
                "UPDATE contents"
                " SET version = version + 1"
                " WHERE id = :content_id"
                "   AND user_id = :owner_id"
                "   AND version = :expected_version"
            ),
            {"content_id": content_id, "owner_id": owner_id, "expected_version": expected_version},
        )
        return result.rowcount == 1

    def delete(self, content: Content) -> None:
        self.db.delete(content)
