"""Document model — one row per distinct ingested URL.

Provides ``DocumentBase`` (non-table base) and ``Document`` (concrete table).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

_EXTENSIONS: dict[str, str] = {
    "text/html": "html",
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "application/json": "json",
    "text/plain": "txt",
    "text/css": "css",
    "text/javascript": "js",
    "application/javascript": "js",
    "application/xml": "xml",
    "text/xml": "xml",
}


def extension_for(content_type: str) -> str:
    """Return the file extension for a MIME type, ignoring parameters."""
    mime = content_type.split(";", 1)[0].strip().lower()
    return _EXTENSIONS.get(mime, "bin")


def bucket_path_for(document_id: str, content_type: str) -> str:
    """Return the blob key of a document's raw content."""
    return f"content/{document_id}.{extension_for(content_type)}"


class DocumentBase(SQLModel):
    """Base fields for a document. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    url: str = Field(index=True, unique=True)
    bucket_path: str = Field(default="")
    content_type: str = Field(default="application/octet-stream")
    size: int = Field(default=0)
    title: str = Field(default="")
    summary: str = Field(default="")
    chunk_count: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
        index=True,
    )


class Document(DocumentBase, table=True):
    """Default document table — ``seen_documents``."""

    __tablename__ = "seen_documents"
