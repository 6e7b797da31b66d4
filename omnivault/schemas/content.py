"""Content schemas."""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.content import Content, ContentType
from .tag import TAG_NAME_MAX_LENGTH

TITLE_MAX_LENGTH = 255
URL_MAX_LENGTH = 2048
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

TagName = Annotated[str, Field(max_length=TAG_NAME_MAX_LENGTH)]


def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title cannot be empty")
    return v


def _check_url(v: str) -> str:
    v = v.strip()
    if not (v.startswith("http://") or v.startswith("https://")):
        raise ValueError("URL must start with http:// or https://")
    return v


class ContentBase(BaseModel):
    """Fields shared by every kind of new content."""
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    folder_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)  # unknown ids are ignored
    tag_names: List[TagName] = Field(default_factory=list)  # missing tags are created

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)


class TextContentCreate(ContentBase):
    text_content: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [{
                "title": "Quarterly Report",
                "description": "finance",
                "text_content": "Revenue grew 12% over the previous quarter.",
                "tag_names": ["finance"],
            }]
        }
    }


class LinkContentCreate(ContentBase):
    url: str = Field(..., max_length=URL_MAX_LENGTH)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)


class FileContentCreate(ContentBase):
    """File reference returned by the blob store. No file bytes pass through here."""
    storage_path: str = Field(..., min_length=1, max_length=1024)
    mime_type: Optional[str] = Field(None, max_length=255)
    size_bytes: Optional[int] = Field(None, ge=0)
    original_filename: Optional[str] = Field(None, max_length=255)


class ContentUpdate(BaseModel):
    """Partial update. Sending ``"folder_id": null`` moves the content to the root level.

    ``expected_version`` enables optimistic concurrency: the update fails with
    409 if the content changed since the client read it.
    """
    title: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    folder_id: Optional[str] = None
    text_content: Optional[str] = None
    url: Optional[str] = Field(None, max_length=URL_MAX_LENGTH)
    expected_version: Optional[int] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_title(v)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_url(v)


class ContentTagsUpdate(BaseModel):
    """Replace the tag set of a content item."""
    tag_ids: List[str] = Field(default_factory=list)
    tag_names: List[TagName] = Field(default_factory=list)


class TagSummary(BaseModel):
    id: str
    name: str
    color: str

    class Config:
        from_attributes = True


class ContentResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    content_type: ContentType
    folder_id: Optional[str] = None
    folder_name: Optional[str] = None
    is_favorite: bool = False
    view_count: int = 0
    text_content: Optional[str] = None
    url: Optional[str] = None
    storage_path: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    original_filename: Optional[str] = None
    tags: List[TagSummary] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, content: Content) -> "ContentResponse":
        """Flatten the content row and its satellite record into one object."""
        return cls(
            id=content.id,
            title=content.title,
            description=content.description,
            content_type=content.content_type,
            folder_id=content.folder_id,
            folder_name=content.folder.name if content.folder else None,
            is_favorite=content.is_favorite,
            view_count=content.view_count,
            text_content=content.text_content.text_content if content.text_content else None,
            url=content.link_content.url if content.link_content else None,
            storage_path=content.storage_path,
            mime_type=content.mime_type,
            size_bytes=content.size_bytes,
            original_filename=content.original_filename,
            tags=[TagSummary.model_validate(t) for t in content.tags],
            version=content.version,
            created_at=content.created_at,
            updated_at=content.updated_at,
        )


class ContentPage(BaseModel):
    """One page of content. ``page`` is zero-based."""
    items: List[ContentResponse]
    total: int
    page: int
    size: int
    total_pages: int
