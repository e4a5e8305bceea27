"""SQLModel database models for seen."""

from seen.models.documents import Document, DocumentBase, bucket_path_for
from seen.models.embeddings import Embedding, EmbeddingBase, decode_vector, encode_vector

__all__ = [
    "Document",
    "DocumentBase",
    "Embedding",
    "EmbeddingBase",
    "bucket_path_for",
    "decode_vector",
    "encode_vector",
]
