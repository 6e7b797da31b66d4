"""Content helpers: search term handling and file type classification."""

import os
import re
from typing import Optional

from ..models.content import ContentType

SEARCH_TERM_MAX_LENGTH = 100

# Quote, semicolon, backslash and the LIKE wildcards are stripped so user
# input can only ever be a literal substring.
_SEARCH_STRIP = re.compile(r"[';\\%_]")


def sanitize_search_term(term: Optional[str]) -> str:
    """Return *term* with LIKE wildcards and quoting characters removed."""
    if not term:
        return ""
    return _SEARCH_STRIP.sub("", term).strip()[:SEARCH_TERM_MAX_LENGTH]


def like_pattern(term: Optional[str]) -> str:
    """Case-insensitive substring pattern for ILIKE. An empty term matches everything."""
    return f"%{sanitize_search_term(term)}%"


_IMAGE_EXTENSIONS = frozenset({
    "jpg", "jpeg", "png", "gif", "bmp", "svg", "webp", "tiff", "ico",
})
_VIDEO_EXTENSIONS = frozenset({
    "mp4", "avi", "mov", "wmv", "flv", "mkv", "webm", "m4v", "mpg", "mpeg",
})
_DOCUMENT_EXTENSIONS = frozenset({
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "txt", "text", "log", "rtf", "csv", "tsv", "md", "markdown",
    "json", "xml", "yaml", "yml", "toml", "ini", "cfg", "conf",
    "odt", "ods", "odp", "odg", "odf",
    "zip", "rar", "7z", "tar", "gz",
})
_DOCUMENT_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/json",
    "application/xml",
    "application/zip",
})


def determine_content_type(mime_type: Optional[str], filename: Optional[str] = None) -> ContentType:
    """Classify an uploaded file as IMAGE, VIDEO, DOCUMENT or OTHER.

    The MIME type reported by the blob store wins; the file extension is the
    fallback when the MIME type is missing or generic.
    """
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime.startswith("image/"):
        return ContentType.IMAGE
    if mime.startswith("video/"):
        return ContentType.VIDEO
    if mime.startswith("text/") or mime in _DOCUMENT_MIME_TYPES:
        return ContentType.DOCUMENT

    extension = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if extension in _IMAGE_EXTENSIONS:
        return ContentType.IMAGE
    if extension in _VIDEO_EXTENSIONS:
        return ContentType.VIDEO
    if extension in _DOCUMENT_EXTENSIONS:
        return ContentType.DOCUMENT
    return ContentType.OTHER
