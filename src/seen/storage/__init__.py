"""Durable storage — document/embedding tables and blob stores."""

from seen.storage.blob import BlobStore, LocalBlobStore
from seen.storage.repository import DocumentRepository

__all__ = [
    "BlobStore",
    "DocumentRepository",
    "LocalBlobStore",
]
