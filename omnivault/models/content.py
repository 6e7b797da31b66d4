"""Content models: the content record, its type-specific satellites, and tags."""

from enum import Enum

from sqlalchemy import (
    Column, Index, String, Text, Integer, BigInteger, Boolean, DateTime, ForeignKey,
    Table, UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from ..database import Base, generate_id, utcnow

DEFAULT_TAG_COLOR = "#808080"


class ContentType(str, Enum):
    TEXT = "TEXT"
    LINK = "LINK"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"
    OTHER = "OTHER"


content_tags = Table(
    "content_tags",
    Base.metadata,
    Column("content_id", String(36), ForeignKey("contents.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(Base):
    """User-defined label. Names are unique per owner."""

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tags_user_name"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False, default=DEFAULT_TAG_COLOR)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Content(Base):
    """A stored item: a text snippet, a link, or a reference to an uploaded file.

    Text bodies and URLs live in satellite tables keyed by content id.
    File bytes never touch this service; only the storage path and metadata
    handed back by the blob store are recorded here.
    """

    __tablename__ = "contents"
    __table_args__ = (
        Index("ix_contents_user_id", "user_id"),
        Index("ix_contents_folder_id", "folder_id"),
        Index("ix_contents_created_at", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content_type = Column(SAEnum(ContentType, name="content_type", native_enum=False, length=20), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id", ondelete="CASCADE"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_favorite = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)

    # File metadata from the blob store (NULL for text and link content)
    storage_path = Column(String(1024), nullable=True)
    mime_type = Column(String(255), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    original_filename = Column(String(255), nullable=True)

    # Optimistic locking: bumped on every update, stale writers get HTTP 409.
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    folder = relationship("Folder", lazy="joined")
    tags = relationship("Tag", secondary=content_tags, lazy="selectin", order_by="Tag.name")
    text_content = relationship(
        "TextContent", uselist=False, cascade="all, delete-orphan", lazy="joined"
    )
    link_content = relationship(
        "LinkContent", uselist=False, cascade="all, delete-orphan", lazy="joined"
    )


class TextContent(Base):
    __tablename__ = "text_contents"

    content_id = Column(String(36), ForeignKey("contents.id", ondelete="CASCADE"), primary_key=True)
    text_content = Column(Text, nullable=False, default="")


class LinkContent(Base):
    __tablename__ = "link_contents"

    content_id = Column(String(36), ForeignKey("contents.id", ondelete="CASCADE"), primary_key=True)
    url = Column(String(2048), nullable=False)
