"""Folder model: per-user folder tree."""

from sqlalchemy import Column, Index, String, Text, DateTime, ForeignKey, UniqueConstraint, text
from ..database import Base, generate_id, utcnow

_ROOT_ONLY = text("parent_id IS NULL")


class Folder(Base):
    """A folder in a user's tree. ``parent_id`` NULL means a root folder.

    Sibling names are unique per owner. NULLs never collide in a plain
    unique constraint, so root-level names get their own partial index.
    """

    __tablename__ = "folders"
    __table_args__ = (
        Index("ix_folders_user_id", "user_id"),
        Index("ix_folders_parent_id", "parent_id"),
        UniqueConstraint("user_id", "parent_id", "name", name="uq_folders_sibling_name"),
        Index(
            "uq_folders_root_name",
            "user_id",
            "name",
            unique=True,
            sqlite_where=_ROOT_ONLY,
            postgresql_where=_ROOT_ONLY,
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(String(36), ForeignKey("folders.id", ondelete="CASCADE"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
