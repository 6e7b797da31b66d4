"""Content operations: create, read, update, tag, list and search.

Every public method takes the owner id first. Content that belongs to
someone else is reported exactly like content that does not exist.
"""

import logging
import math
from typing import Iterable, List

from sqlalchemy.orm import Query, Session

from ..exceptions import ConflictError, ValidationError
from ..models.content import Content, ContentType, LinkContent, Tag, TextContent
from ..repositories.content_repository import ContentRepository
from ..repositories.folder_repository import FolderRepository
from ..repositories.tag_repository import TagRepository
from ..schemas.content import (
    ContentPage,
    ContentResponse,
    ContentTagsUpdate,
    ContentUpdate,
    FileContentCreate,
    LinkContentCreate,
    TextContentCreate,
)
from .content_utils import determine_content_type, like_pattern
from .tag_service import TagService

logger = logging.getLogger(__name__)

SEARCH_MODES = ("basic", "full")


class ContentService:
    """Content CRUD plus the list and search views.

    Public methods:
        create_text_content / create_link_content / create_file_content
        get_content         -- single item, counts a view
        update_content      -- partial update, optional version check
        toggle_favorite
        update_content_tags -- replace the tag set
        delete_content
        list_contents / list_by_folder / list_by_type / list_by_tag / list_favorites
        recent_contents / popular_contents
        search_content      -- basic (title, description) or full (+ body, url)
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContentRepository(db)
        self.folder_repo = FolderRepository(db)
        self.tag_repo = TagRepository(db)
        self.tags = TagService(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_text_content(self, owner_id: str, data: TextContentCreate) -> ContentResponse:
        content = self._new_content(owner_id, data, ContentType.TEXT)
        content.text_content = TextContent(text_content=data.text_content)
        return self._save_new(owner_id, content)

    def create_link_content(self, owner_id: str, data: LinkContentCreate) -> ContentResponse:
        content = self._new_content(owner_id, data, ContentType.LINK)
        content.link_content = LinkContent(url=data.url)
        return self._save_new(owner_id, content)

    def create_file_content(self, owner_id: str, data: FileContentCreate) -> ContentResponse:
        """Record an already-stored file. The type comes from its MIME type and name."""
        content_type = determine_content_type(data.mime_type, data.original_filename or data.storage_path)
        content = self._new_content(owner_id, data, content_type)
        content.storage_path = data.storage_path
        content.mime_type = data.mime_type
        content.size_bytes = data.size_bytes
        content.original_filename = data.original_filename
        return self._save_new(owner_id, content)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_content(self, owner_id: str, content_id: str) -> ContentResponse:
        """Return one item and count the view."""
        self.repo.get_owned(content_id, owner_id)
        self.repo.increment_view_count(owner_id, content_id)
        self.db.commit()
        content = self.repo.get_owned(content_id, owner_id)
        return ContentResponse.from_model(content)

    def list_contents(self, owner_id: str, page: int = 0, size: int = 20) -> ContentPage:
        return self._page(self.repo.all_query(owner_id), page, size)

    def list_by_folder(self, owner_id: str, folder_id: str, page: int = 0, size: int = 20) -> ContentPage:
        self.folder_repo.get_owned(folder_id, owner_id)
        return self._page(self.repo.by_folder_query(owner_id, folder_id), page, size)

    def list_by_type(
        self, owner_id: str, content_type: ContentType, page: int = 0, size: int = 20,
    ) -> ContentPage:
        return self._page(self.repo.by_type_query(owner_id, content_type), page, size)

    def list_by_tag(self, owner_id: str, tag_id: str, page: int = 0, size: int = 20) -> ContentPage:
        self.tag_repo.get_owned(tag_id, owner_id)
        return self._page(self.repo.by_tag_query(owner_id, tag_id), page, size)

    def list_favorites(self, owner_id: str, page: int = 0, size: int = 20) -> ContentPage:
        return self._page(self.repo.favorites_query(owner_id), page, size)

    def recent_contents(self, owner_id: str, page: int = 0, size: int = 20) -> ContentPage:
        return self._page(self.repo.all_query(owner_id), page, size)

    def popular_contents(self, owner_id: str) -> List[ContentResponse]:
        return [ContentResponse.from_model(c) for c in self.repo.most_viewed(owner_id)]

    def search_content(
        self,
        owner_id: str,
        term: str,
        mode: str = "basic",
        page: int = 0,
        size: int = 20,
    ) -> ContentPage:
        if mode not in SEARCH_MODES:
            raise ValidationError(f"Unknown search mode '{mode}'", field="mode")
        query = self.repo.search_query(owner_id, like_pattern(term), full=(mode == "full"))
        return self._page(query, page, size)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update_content(self, owner_id: str, content_id: str, changes: ContentUpdate) -> ContentResponse:
        """Apply a partial update.

        With ``expected_version`` the version is claimed first with a
        conditional UPDATE; a stale version raises ConflictError and nothing
        is written.
        """
        content = self.repo.get_owned(content_id, owner_id)

        if changes.text_content is not None and content.content_type != ContentType.TEXT:
            raise ValidationError("Only text content has a text body", field="text_content")
        if changes.url is not None and content.content_type != ContentType.LINK:
            raise ValidationError("Only link content has a URL", field="url")

        folder_id = content.folder_id
        if "folder_id" in changes.model_fields_set:
            folder_id = changes.folder_id
            if folder_id is not None:
                self.folder_repo.get_owned(folder_id, owner_id)

        if changes.expected_version is not None:
            if not self.repo.claim_version(owner_id, content_id, changes.expected_version):
                self.db.rollback()
                logger.info(
                    "Content update rejected: stale version",
                    extra={"content_id": content_id, "expected_version": changes.expected_version},
                )
                raise ConflictError(
                    "Content was modified by another request",
                    details={"expected_version": changes.expected_version},
                )
            self.db.refresh(content)
        else:
            content.version = Content.version + 1

        if changes.title is not None:
            content.title = changes.title
        if changes.description is not None:
            content.description = changes.description
        content.folder_id = folder_id
        if changes.text_content is not None:
            content.text_content.text_content = changes.text_content
        if changes.url is not None:
            content.link_content.url = changes.url

        self.db.commit()
        self.db.refresh(content)
        return ContentResponse.from_model(content)

    def toggle_favorite(self, owner_id: str, content_id: str) -> ContentResponse:
        content = self.repo.get_owned(content_id, owner_id)
        content.is_favorite = not content.is_favorite
        self.db.commit()
        self.db.refresh(content)
        return ContentResponse.from_model(content)

    def update_content_tags(self, owner_id: str, content_id: str, data: ContentTagsUpdate) -> ContentResponse:
        """Replace the tag set. Unknown tag ids are ignored; unknown names are created."""
        content = self.repo.get_owned(content_id, owner_id)
        content.tags = self._resolve_tags(owner_id, data.tag_ids, data.tag_names)
        self.db.commit()
        self.db.refresh(content)
        return ContentResponse.from_model(content)

    def delete_content(self, owner_id: str, content_id: str) -> None:
        content = self.repo.get_owned(content_id, owner_id)
        self.repo.delete(content)
        self.db.commit()
        logger.info("Content deleted", extra={"content_id": content_id, "user_id": owner_id})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_content(self, owner_id: str, data, content_type: ContentType) -> Content:
        if data.folder_id is not None:
            self.folder_repo.get_owned(data.folder_id, owner_id)
        return Content(
            title=data.title,
            description=data.description,
            content_type=content_type,
            folder_id=data.folder_id,
            user_id=owner_id,
            tags=self._resolve_tags(owner_id, data.tag_ids, data.tag_names),
        )

    def _save_new(self, owner_id: str, content: Content) -> ContentResponse:
        content = self.repo.add(content)
        self.db.commit()
        self.db.refresh(content)
        logger.info(
            "Content created",
            extra={"content_id": content.id, "content_type": content.content_type.value, "user_id": owner_id},
        )
        return ContentResponse.from_model(content)

    def _resolve_tags(self, owner_id: str, tag_ids: Iterable[str], tag_names: Iterable[str]) -> List[Tag]:
        by_id = {t.id: t for t in self.tags.resolve_tags_by_ids(owner_id, tag_ids or [])}
        for tag in self.tags.find_or_create_tags(owner_id, tag_names or []):
            by_id.setdefault(tag.id, tag)
        return sorted(by_id.values(), key=lambda t: t.name)

    def _page(self, query: Query, page: int, size: int) -> ContentPage:
        if page < 0:
            raise ValidationError("Page index must not be negative", field="page")
        if size < 1:
            raise ValidationError("Page size must be at least 1", field="size")
        items, total = self.repo.paginate(query, page, size)
        return ContentPage(
            items=[ContentResponse.from_model(c) for c in items],
            total=total,
            page=page,
            size=size,
            total_pages=math.ceil(total / size) if total else 0,
        )

